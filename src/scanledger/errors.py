"""Error taxonomy for the scan pipeline and error categorization."""

from __future__ import annotations

import re

# Categories that may succeed on a later attempt with the same work version.
RETRYABLE_CATEGORIES = frozenset(
    {
        "TIMEOUT",
        "MEMORY_LIMIT",
        "SCANNER_PANIC",
        "VULNDB_UNAVAILABLE",
        "STORAGE",
        "SETUP",
        "MISC",
    }
)


class ScanLedgerError(Exception):
    """Base class for errors raised by scanledger."""

    category = "MISC"


class MalformedMessageError(ScanLedgerError):
    """A scanner message is not valid JSON or does not carry exactly one payload."""

    category = "BAD_OUTPUT"


class TruncatedStreamError(ScanLedgerError):
    """The scanner stream ended in the middle of a message."""

    category = "BAD_OUTPUT"


class CommandError(ScanLedgerError):
    """An external command exited with a disallowed status.

    ``stderr`` holds the captured text verbatim; the message is its trimmed
    form, or the exit status when the command wrote nothing.
    """

    def __init__(self, stderr: str, returncode: int | None = None):
        message = stderr.strip() or f"exit status {returncode}"
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class ScannerExecutionError(CommandError):
    """The scanner exited with a non-zero status."""

    @property
    def category(self) -> str:  # type: ignore[override]
        return _categorize_text(self.stderr)


class ScanTimeoutError(ScanLedgerError):
    """The scanner did not finish before its deadline and was killed."""

    category = "TIMEOUT"


class BuildError(CommandError):
    """Building a binary for binary-mode scanning failed."""

    category = "BUILD_FAILURE"


class ToolNotFoundError(ScanLedgerError):
    """A required external binary is not installed."""

    category = "SETUP"


class InvariantViolation(ScanLedgerError):
    """Programming error: an internal precondition did not hold."""

    category = "INTERNAL"


class RequestError(ScanLedgerError):
    """A scan request could not be parsed."""

    category = "BAD_REQUEST"


class StorageError(ScanLedgerError):
    """Reading or writing result rows failed."""

    category = "STORAGE"


# Ordered: the first matching pattern wins.
_TEXT_CATEGORIES: list[tuple[str, re.Pattern[str]]] = [
    ("TIMEOUT", re.compile(r"timed out|deadline exceeded|timeout", re.I)),
    ("MEMORY_LIMIT", re.compile(r"out of memory|memory limit|cannot allocate memory", re.I)),
    ("SCANNER_PANIC", re.compile(r"^panic:|goroutine \d+ \[running\]", re.I | re.M)),
    (
        "VULNDB_UNAVAILABLE",
        re.compile(r"\bdb unreachable|vuln(?:erability)? ?db|fetching vulnerabilities", re.I),
    ),
    ("MODULE_NOT_FOUND", re.compile(r"no required module|cannot find module|not found", re.I)),
    (
        "BUILD_FAILURE",
        re.compile(r"build failed|could not load packages|cannot build|undefined:", re.I),
    ),
]


def _categorize_text(text: str) -> str:
    for category, pattern in _TEXT_CATEGORIES:
        if pattern.search(text):
            return category
    return "MISC"


def categorize_error(error: BaseException | str | None) -> str:
    """Return a short classification for an error, or "" when there is none."""
    if error is None:
        return ""
    if isinstance(error, str):
        return _categorize_text(error) if error else ""
    if isinstance(error, ScanLedgerError):
        return error.category
    if isinstance(error, TimeoutError):
        return "TIMEOUT"
    if isinstance(error, MemoryError):
        return "MEMORY_LIMIT"
    return _categorize_text(str(error))


def is_retryable(category: str) -> bool:
    """True if a row with this error category should be rescanned."""
    return category in RETRYABLE_CATEGORIES
