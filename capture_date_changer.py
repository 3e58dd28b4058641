#!/usr/bin/env python3
"""
Capture Date Changer

Sets the capture date of many images at once. The day and month (and
optionally the year) of the EXIF DateTimeOriginal, CreateDate and ModifyDate
tags are replaced while each file keeps its original time-of-day and
timezone offset. Files are processed in parallel through exiftool.
"""

import argparse
import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from exif_timestamp_utils import is_four_digit_year, transform_timestamp
from exiftool_gateway import (
    DEFAULT_EXIFTOOL,
    ExiftoolGateway,
    ExiftoolWriteError,
    ensure_exiftool_available,
)

logger = logging.getLogger(__name__)

RED = "\033[91m"
RESET = "\033[0m"


@dataclass(frozen=True)
class DateEdit:
    """The requested new date, shared read-only by every worker."""

    day: str
    month: str
    year: Optional[str] = None

    @classmethod
    def from_numbers(
        cls, day: int, month: int, year: Optional[str] = None
    ) -> "DateEdit":
        return cls(day=f"{day:02d}", month=f"{month:02d}", year=year)


@dataclass
class FileTask:
    """One unit of work: a file plus the shared edit and limiter."""

    file_path: str
    date_edit: DateEdit
    limiter: threading.BoundedSemaphore


class OutcomeKind(Enum):
    SUCCESS = "success"
    SKIPPED_UNREADABLE = "skipped_unreadable"
    SKIPPED_MALFORMED = "skipped_malformed"
    WRITE_FAILED = "write_failed"
    EXECUTION_FAILED = "execution_failed"


@dataclass(frozen=True)
class Outcome:
    """Terminal result of processing one file."""

    file_path: str
    kind: OutcomeKind
    new_timestamp: Optional[str] = None
    original_timestamp: Optional[str] = None
    error: Optional[str] = None
    dry_run: bool = False

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


def default_concurrency() -> int:
    """Number of processing units this process may run on, at least 1."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


class CaptureDateChanger:
    """Applies one DateEdit to a batch of files with bounded concurrency."""

    # Formats exiftool can write EXIF dates to
    IMAGE_EXTENSIONS = {
        ".jpg",
        ".jpeg",
        ".png",
        ".tiff",
        ".tif",
        ".webp",
        ".heic",
        ".heif",
        ".dng",
        ".cr2",
        ".nef",
        ".arw",
    }

    def __init__(
        self,
        date_edit: DateEdit,
        gateway: ExiftoolGateway,
        concurrency: int,
        dry_run: bool = False,
    ):
        """
        Initialize the capture date changer.

        Args:
            date_edit: New day, month and optional year
            gateway: Reads and writes timestamps through exiftool
            concurrency: Maximum number of files processed at the same time
            dry_run: If True, compute new timestamps without writing them
        """
        if concurrency < 1:
            raise ValueError(f"Concurrency must be a positive integer: {concurrency}")

        self.date_edit = date_edit
        self.gateway = gateway
        self.concurrency = concurrency
        self.dry_run = dry_run

    def find_image_files(self, directory: Path) -> List[str]:
        """
        Recursively find all supported image files below a directory.

        Returns:
            Sorted list of file paths as strings
        """
        discovered_image_files = [
            str(current_file_path)
            for current_file_path in directory.rglob("*")
            if current_file_path.is_file()
            and current_file_path.suffix.lower() in self.IMAGE_EXTENSIONS
        ]
        return sorted(discovered_image_files)

    def expand_paths(self, paths: Sequence[str]) -> List[str]:
        """Replace directory arguments with the image files they contain."""
        expanded_paths = []
        for path in paths:
            if Path(path).is_dir():
                expanded_paths.extend(self.find_image_files(Path(path)))
            else:
                expanded_paths.append(path)
        return expanded_paths

    def process_file(self, task: FileTask) -> Outcome:
        """
        Read, transform and write back the capture timestamp of one file.

        The concurrency slot is held for the whole read-transform-write
        sequence and released on every exit path.

        Args:
            task: File to process with the shared edit and limiter

        Returns:
            Outcome describing how processing of this file ended
        """
        file_path = task.file_path
        edit = task.date_edit

        with task.limiter:
            original_timestamp = self.gateway.read_original_datetime(file_path)
            if original_timestamp is None:
                return Outcome(file_path, OutcomeKind.SKIPPED_UNREADABLE)

            new_timestamp = transform_timestamp(
                original_timestamp, edit.year, edit.month, edit.day
            )
            if new_timestamp is None:
                return Outcome(
                    file_path,
                    OutcomeKind.SKIPPED_MALFORMED,
                    original_timestamp=original_timestamp,
                )

            if self.dry_run:
                return Outcome(
                    file_path,
                    OutcomeKind.SUCCESS,
                    new_timestamp=new_timestamp,
                    original_timestamp=original_timestamp,
                    dry_run=True,
                )

            try:
                self.gateway.write_datetime(file_path, new_timestamp)
            except ExiftoolWriteError as e:
                return Outcome(
                    file_path,
                    OutcomeKind.WRITE_FAILED,
                    new_timestamp=new_timestamp,
                    original_timestamp=original_timestamp,
                    error=str(e),
                )

            return Outcome(
                file_path,
                OutcomeKind.SUCCESS,
                new_timestamp=new_timestamp,
                original_timestamp=original_timestamp,
            )

    def run_batch(
        self,
        file_paths: Sequence[str],
        on_outcome: Optional[Callable[[Outcome], None]] = None,
    ) -> List[Outcome]:
        """
        Process every file concurrently and wait for all of them.

        A worker that crashes is reported as an EXECUTION_FAILED outcome and
        does not stop the remaining files.

        Args:
            file_paths: Files to process
            on_outcome: Called once per file as soon as its outcome is known

        Returns:
            One outcome per input file, in completion order
        """
        limiter = threading.BoundedSemaphore(self.concurrency)
        outcomes: List[Outcome] = []

        if not file_paths:
            return outcomes

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            future_to_file = {
                executor.submit(
                    self.process_file, FileTask(file_path, self.date_edit, limiter)
                ): file_path
                for file_path in file_paths
            }

            for future in as_completed(future_to_file):
                file_path = future_to_file[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.debug("Worker for %s crashed", file_path, exc_info=True)
                    outcome = Outcome(
                        file_path,
                        OutcomeKind.EXECUTION_FAILED,
                        error=str(e) or type(e).__name__,
                    )

                outcomes.append(outcome)
                if on_outcome is not None:
                    self._report(on_outcome, outcome)

        return outcomes

    def _report(self, on_outcome: Callable[[Outcome], None], outcome: Outcome) -> None:
        # A failing report must not abort the rest of the batch
        try:
            on_outcome(outcome)
        except Exception:
            logger.warning(
                "Could not report outcome for %r", outcome.file_path, exc_info=True
            )


def summarize_outcomes(outcomes: Sequence[Outcome]) -> Dict[OutcomeKind, int]:
    """Count outcomes per kind, including kinds that never occurred."""
    summary = {kind: 0 for kind in OutcomeKind}
    for outcome in outcomes:
        summary[outcome.kind] += 1
    return summary


def format_outcome(outcome: Outcome) -> str:
    """Build the console line reported for one file."""
    file_path = outcome.file_path

    if outcome.kind is OutcomeKind.SUCCESS:
        prefix = "[DRY RUN] " if outcome.dry_run else ""
        return f"{prefix}✅ {file_path} → {outcome.new_timestamp}"
    if outcome.kind is OutcomeKind.SKIPPED_UNREADABLE:
        return f"⚠️  Could not read DateTimeOriginal from '{file_path}'. Skipping."
    if outcome.kind is OutcomeKind.SKIPPED_MALFORMED:
        return f"⚠️  Unexpected DateTimeOriginal format in '{file_path}'. Skipping."
    if outcome.kind is OutcomeKind.WRITE_FAILED:
        return f"❌ Failed to write EXIF for '{file_path}': {outcome.error}"
    return f"❌ Unexpected error while processing '{file_path}': {outcome.error}"


def print_outcome(outcome: Outcome) -> None:
    """Print one outcome line; failures go to stderr in red."""
    line = format_outcome(outcome)
    stream = sys.stdout if outcome.is_success else sys.stderr
    if not outcome.is_success and stream.isatty():
        line = f"{RED}{line}{RESET}"

    try:
        print(line, file=stream, flush=True)
    except UnicodeEncodeError:
        # File names that are not valid in the console encoding are escaped
        encoding = getattr(stream, "encoding", None) or "ascii"
        escaped_line = line.encode(encoding, "backslashreplace").decode(encoding)
        print(escaped_line, file=stream, flush=True)


def print_summary(outcomes: Sequence[Outcome], dry_run: bool) -> None:
    summary = summarize_outcomes(outcomes)

    print()
    print("=" * 60)
    print(f"{'DRY RUN ' if dry_run else ''}SUMMARY:")
    print(f"Total files: {len(outcomes)}")
    print(
        f"Files {'that would be ' if dry_run else ''}updated: "
        f"{summary[OutcomeKind.SUCCESS]}"
    )
    print(f"Skipped (unreadable): {summary[OutcomeKind.SKIPPED_UNREADABLE]}")
    print(f"Skipped (unexpected format): {summary[OutcomeKind.SKIPPED_MALFORMED]}")
    print(f"Write failures: {summary[OutcomeKind.WRITE_FAILED]}")
    print(f"Unexpected errors: {summary[OutcomeKind.EXECUTION_FAILED]}")


def _bounded_int(name: str, low: int, high: int) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid {name}: {value!r}")
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(
                f"{name.capitalize()} must be between {low} and {high}"
            )
        return number

    return parse


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid job count: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("Job count must be a positive integer")
    return number


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="capture-date-changer",
        description=(
            "Set the capture date of images while keeping their time-of-day "
            "and timezone offset"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s 25 12 IMG_0001.jpg IMG_0002.jpg   # Keep year, set 25 December
  %(prog)s 1 7 1999 photos/                  # Set 1 July 1999 for a whole folder
  %(prog)s 14 2 *.jpg --dry-run              # Preview without modifying

If the first path is exactly four digits it is used as the new year.
        """,
    )

    parser.add_argument(
        "day", type=_bounded_int("day", 1, 31), help="Day number (01-31)"
    )
    parser.add_argument(
        "month", type=_bounded_int("month", 1, 12), help="Month number (01-12)"
    )
    parser.add_argument(
        "paths",
        nargs="+",
        metavar="[year] path",
        help="Optional four-digit year followed by image files or folders",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=_positive_int,
        default=default_concurrency(),
        help="Number of files processed in parallel (default: CPU count)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the new timestamps without modifying files",
    )
    parser.add_argument(
        "--exiftool",
        default=DEFAULT_EXIFTOOL,
        help="exiftool executable to use (default: %(default)s)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log every exiftool call"
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the script."""
    parser = build_argument_parser()
    parsed_arguments = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if parsed_arguments.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    paths = list(parsed_arguments.paths)
    year = None
    if is_four_digit_year(paths[0]):
        year = paths.pop(0)

    if not paths:
        print("No image files supplied.", file=sys.stderr)
        sys.exit(1)

    if not ensure_exiftool_available(parsed_arguments.exiftool):
        print(
            f"ERROR: '{parsed_arguments.exiftool}' not found in PATH.", file=sys.stderr
        )
        sys.exit(1)

    date_edit = DateEdit.from_numbers(parsed_arguments.day, parsed_arguments.month, year)
    changer = CaptureDateChanger(
        date_edit,
        ExiftoolGateway(parsed_arguments.exiftool),
        concurrency=parsed_arguments.jobs,
        dry_run=parsed_arguments.dry_run,
    )

    file_paths = changer.expand_paths(paths)
    if not file_paths:
        print("No image files found to process.")
        return

    logger.debug(
        "Processing %d files with %d jobs", len(file_paths), changer.concurrency
    )
    outcomes = changer.run_batch(file_paths, on_outcome=print_outcome)
    print_summary(outcomes, parsed_arguments.dry_run)


if __name__ == "__main__":
    main()
