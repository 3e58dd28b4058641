#!/usr/bin/env python3
"""
Exiftool Gateway

Thin adapter over the external exiftool binary. Reads the primary capture
timestamp of a file and writes a new value to the three main EXIF date tags.
All process execution goes through a runner so the gateway can be exercised
without a real exiftool installation.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_EXIFTOOL = "exiftool"

PRIMARY_TIMESTAMP_TAG = "DateTimeOriginal"
WRITTEN_TIMESTAMP_TAGS = ("DateTimeOriginal", "CreateDate", "ModifyDate")


class ExiftoolWriteError(Exception):
    """Exception raised when exiftool fails to write new timestamps."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


@dataclass(frozen=True)
class CommandResult:
    """Exit code and captured standard output of one external command."""

    returncode: int
    stdout: bytes = b""


# A runner takes the full argument list and whether output should be captured
Runner = Callable[[List[str], bool], CommandResult]


def subprocess_runner(command: List[str], capture_output: bool) -> CommandResult:
    """
    Run a command with subprocess and wait for it to exit.

    Args:
        command: Program and arguments
        capture_output: If True, standard output is captured and returned;
            otherwise standard output and standard error are discarded

    Returns:
        CommandResult with the exit code and captured output

    Raises:
        OSError: If the program cannot be launched
    """
    if capture_output:
        completed = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
            check=False,
        )
        return CommandResult(completed.returncode, completed.stdout)

    completed = subprocess.run(
        command,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        stdin=subprocess.DEVNULL,
        check=False,
    )
    return CommandResult(completed.returncode)


def ensure_exiftool_available(executable: str = DEFAULT_EXIFTOOL) -> bool:
    """Check that the exiftool executable can be found."""
    return shutil.which(executable) is not None


class ExiftoolGateway:
    """Reads and writes capture timestamps through exiftool."""

    def __init__(
        self, executable: str = DEFAULT_EXIFTOOL, runner: Runner = subprocess_runner
    ):
        self.executable = executable
        self.runner = runner

    def build_read_command(self, file_path: Union[str, Path]) -> List[str]:
        # -s -s -s prints the bare value without the tag label
        return [
            self.executable,
            f"-{PRIMARY_TIMESTAMP_TAG}",
            "-s",
            "-s",
            "-s",
            str(file_path),
        ]

    def build_write_command(
        self, file_path: Union[str, Path], new_timestamp: str
    ) -> List[str]:
        command = [self.executable, "-overwrite_original"]
        command.extend(f"-{tag}={new_timestamp}" for tag in WRITTEN_TIMESTAMP_TAGS)
        command.append(str(file_path))
        return command

    def read_original_datetime(self, file_path: Union[str, Path]) -> Optional[str]:
        """
        Read the raw DateTimeOriginal value of a file.

        Args:
            file_path: Path to the image file

        Returns:
            The trimmed timestamp string, or None if exiftool could not be run,
            exited non-zero, printed undecodable output or printed nothing
        """
        command = self.build_read_command(file_path)
        logger.debug("Running %s", command)

        try:
            result = self.runner(command, True)
        except OSError as e:
            logger.debug("Could not launch %s: %s", self.executable, e)
            return None

        if result.returncode != 0:
            logger.debug(
                "%s exited with status %d for %s",
                self.executable,
                result.returncode,
                file_path,
            )
            return None

        try:
            text = result.stdout.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.debug("Undecodable %s output for %s", PRIMARY_TIMESTAMP_TAG, file_path)
            return None

        return text or None

    def write_datetime(self, file_path: Union[str, Path], new_timestamp: str) -> None:
        """
        Overwrite DateTimeOriginal, CreateDate and ModifyDate in place.

        No backup copy of the file is kept.

        Args:
            file_path: Path to the image file
            new_timestamp: Value written to all three tags

        Raises:
            ExiftoolWriteError: If exiftool cannot be run or exits non-zero
        """
        command = self.build_write_command(file_path, new_timestamp)
        logger.debug("Running %s", command)

        try:
            result = self.runner(command, False)
        except OSError as e:
            raise ExiftoolWriteError(f"could not run {self.executable}: {e}") from e

        if result.returncode != 0:
            raise ExiftoolWriteError(
                "exiftool returned non-zero status", result.returncode
            )
