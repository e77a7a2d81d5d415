"""
Sprig - declarative UI scripts with a hot-reloading, id-reconciled runtime.

Scripts declare windows and widgets in a small block-structured language.
Sprig evaluates them into declaration trees, reconciles those against a
persistent live tree by widget id, and emits create/update/reorder/destroy
commands for a renderer to apply.
"""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path as _Path

# Re-export commonly used types for convenience
from .core import ir
from .core.errors import DispatchError, ParseError, ReconcileInvariantError, SemanticError, SprigError


def _get_version() -> str:
    """Get version from pyproject.toml (editable) or importlib.metadata (installed)."""
    # In editable mode, read directly from pyproject.toml for live updates
    pyproject = _Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        content = pyproject.read_text()
        if match := re.search(r'^version\s*=\s*["\']([^"\']+)["\']', content, re.MULTILINE):
            return match.group(1)

    try:
        return _metadata_version("sprig")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    "ir",
    "SprigError",
    "ParseError",
    "SemanticError",
    "ReconcileInvariantError",
    "DispatchError",
]
