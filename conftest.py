"""
Shared pytest configuration.

Test docstrings are displayed as test names in reports, and a fake exiftool
runner is provided so gateway and batch tests never launch a real process.
"""

import threading
from typing import Dict, List, Optional

import pytest

from exiftool_gateway import CommandResult


class FakeExiftoolRunner:
    """Records exiftool invocations and answers them from canned results."""

    def __init__(
        self,
        read_results: Optional[Dict[str, CommandResult]] = None,
        write_returncodes: Optional[Dict[str, int]] = None,
    ):
        self.read_results = read_results or {}
        self.write_returncodes = write_returncodes or {}
        self.commands: List[List[str]] = []
        self._lock = threading.Lock()

    def __call__(self, command: List[str], capture_output: bool) -> CommandResult:
        with self._lock:
            self.commands.append(list(command))

        file_path = command[-1]
        if capture_output:
            return self.read_results.get(file_path, CommandResult(1))
        return CommandResult(self.write_returncodes.get(file_path, 0))

    @property
    def write_commands(self) -> List[List[str]]:
        return [command for command in self.commands if "-overwrite_original" in command]


@pytest.fixture
def fake_runner():
    return FakeExiftoolRunner()


def pytest_collection_modifyitems(items):
    """Modify test items to use docstrings as human-readable test names."""
    for item in items:
        docstring = item.function.__doc__
        if not docstring:
            continue
        summary = next(
            (line.strip() for line in docstring.strip().splitlines() if line.strip()),
            None,
        )
        if summary:
            # Keep the parameter id of parametrized tests
            start = item.nodeid.find("[")
            parameter_part = item.nodeid[start:] if start != -1 else ""
            item._nodeid = summary + parameter_part
