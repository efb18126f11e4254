"""Dispatch decoded scanner messages to a handler."""

from __future__ import annotations

from collections.abc import Iterable

from .decoder import decode_messages
from .models import (
    Config,
    ConfigMessage,
    Finding,
    FindingMessage,
    Message,
    OSVEntry,
    OSVMessage,
    Progress,
    ProgressMessage,
)


class Handler:
    """Receives scanner messages in stream order. Methods default to no-ops."""

    def config(self, config: Config) -> None:
        pass

    def progress(self, progress: Progress) -> None:
        pass

    def osv(self, entry: OSVEntry) -> None:
        pass

    def finding(self, finding: Finding) -> None:
        pass


class FindingsHandler(Handler):
    """Collect findings; keep the config header, ignore everything else."""

    def __init__(self) -> None:
        self.header: Config | None = None
        self._findings: list[Finding] = []

    def config(self, config: Config) -> None:
        self.header = config

    def finding(self, finding: Finding) -> None:
        self._findings.append(finding)

    def findings(self) -> list[Finding]:
        return list(self._findings)


def dispatch(message: Message, handler: Handler) -> None:
    """Call the handler method matching the message variant."""
    match message:
        case ConfigMessage(config=config):
            handler.config(config)
        case ProgressMessage(progress=progress):
            handler.progress(progress)
        case OSVMessage(osv=entry):
            handler.osv(entry)
        case FindingMessage(finding=finding):
            handler.finding(finding)
        case _:
            raise TypeError(f"unknown message type {type(message).__name__}")


def handle_stream(chunks: Iterable[bytes], handler: Handler) -> int:
    """Decode a chunked stream, feeding every message to ``handler``.

    Returns the number of messages handled.
    """
    count = 0
    for message in decode_messages(chunks):
        dispatch(message, handler)
        count += 1
    return count
