import shutil
from pathlib import Path

import pytest

from prefixkit.config_manager import ConfigManager
from prefixkit.results import DispatchResult, Outcome
from prefixkit.source_tree import LocalSourceTree


class FakeBackend:
    """Records every dispatch and replays queued results."""

    def __init__(self, results=None, error=None):
        self.records = []
        self.results = list(results or [])
        self.error = error
        self.on_execute = None

    def execute(self, record):
        self.records.append(record)
        if self.on_execute is not None:
            self.on_execute(record)
        if self.error is not None:
            error, self.error = self.error, None
            raise error
        if self.results:
            result = self.results.pop(0)
            return result(record) if callable(result) else result
        outcome = Outcome.DRY_RUN_REPORT if record.flags.analysis_only else Outcome.APPLIED
        return DispatchResult(outcome=outcome, summary=f"done: {record.command.to_line()}")


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Copy sample_project fixture to a temp directory."""
    src = Path(__file__).parent / "fixtures" / "sample_project"
    dst = tmp_path / "sample_project"
    shutil.copytree(src, dst)
    return dst


@pytest.fixture
def initialized_project(sample_project: Path) -> Path:
    ConfigManager(str(sample_project)).initialize()
    return sample_project


@pytest.fixture
def tree(sample_project: Path) -> LocalSourceTree:
    return LocalSourceTree(str(sample_project))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_backend():
    """Factory for a FakeBackend with queued results or a one-shot error."""
    return FakeBackend
