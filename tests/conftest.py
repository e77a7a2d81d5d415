"""Shared pytest fixtures for Sprig tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from sprig.core.evaluator import EvaluationResult, evaluate_script
from sprig.core.parser import parse_script
from sprig.runtime import Pipeline, RecordingSink
from sprig.runtime.pipeline import ReloadResult


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def scripts_dir(fixtures_dir: Path) -> Path:
    """Return path to script fixtures directory."""
    return fixtures_dir / "scripts"


@pytest.fixture
def demo_script(scripts_dir: Path) -> Path:
    """Return path to the demo.sprig fixture."""
    return scripts_dir / "demo.sprig"


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def pipeline(sink: RecordingSink) -> Pipeline:
    """A pipeline with an empty live tree, driven synchronously."""
    return Pipeline(sink)


@pytest.fixture
def evaluate() -> Callable[[str], EvaluationResult]:
    """Parse and evaluate script text."""

    def _evaluate(text: str) -> EvaluationResult:
        return evaluate_script(parse_script(text, "test.sprig"), "test.sprig", text)

    return _evaluate


@pytest.fixture
def load(pipeline: Pipeline) -> Callable[[str], ReloadResult]:
    """Run a load pass on script text, raising the pass error if any."""

    def _load(text: str) -> ReloadResult:
        result = pipeline.load(Path("test.sprig"), text)
        if result.error is not None:
            raise result.error
        return result

    return _load
