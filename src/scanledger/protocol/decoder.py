"""Incremental decoder for the scanner JSON message stream.

The scanner writes a sequence of JSON objects, either one per line or
pretty-printed across lines. The decoder accepts arbitrary chunk boundaries
and yields each message as soon as its closing brace has been read.
"""

from __future__ import annotations

import codecs
import json
import re
from collections.abc import Iterable, Iterator
from typing import BinaryIO

from scanledger.errors import MalformedMessageError, ScanLedgerError, TruncatedStreamError

from .models import Message, message_from_dict

DEFAULT_CHUNK_SIZE = 64 * 1024

# Tails that more input could still turn into a valid token: partial
# literals, numbers and escapes, or nothing at all.
_PARTIAL_TOKEN = re.compile(
    r"(?:t(?:r(?:ue?)?)?|f(?:a(?:l(?:se?)?)?)?|n(?:u(?:ll?)?)?"
    r"|-?\d*(?:\.\d*)?(?:[eE][+-]?\d*)?"
    r"|\\(?:u[0-9a-fA-F]{0,3})?)\Z"
)


def _needs_more_input(buf: str, pos: int) -> bool:
    tail = buf[pos:]
    if tail.startswith('"'):
        return "\n" not in tail
    return _PARTIAL_TOKEN.match(tail) is not None


class StreamDecoder:
    """Push-style decoder: ``feed`` bytes, then ``close`` at end of stream."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._json = json.JSONDecoder()
        self._buf = ""
        self._count = 0
        self._error: ScanLedgerError | None = None

    @property
    def count(self) -> int:
        """Number of messages decoded so far."""
        return self._count

    def feed(self, data: bytes) -> list[Message]:
        """Add bytes and return every message completed by them."""
        try:
            self._buf += self._utf8.decode(data)
        except UnicodeDecodeError as e:
            raise MalformedMessageError(f"stream is not valid UTF-8: {e}") from e
        return self._drain(final=False)

    def close(self) -> list[Message]:
        """Signal end of stream; fail if a message was cut short."""
        if self._error is not None:
            raise self._error
        try:
            self._buf += self._utf8.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise TruncatedStreamError("stream ends inside a UTF-8 sequence") from e
        return self._drain(final=True)

    def _drain(self, final: bool) -> list[Message]:
        if self._error is not None:
            raise self._error
        messages: list[Message] = []
        while True:
            try:
                message = self._next(final)
            except ScanLedgerError as e:
                if not messages:
                    raise
                # Hand out what was decoded; the error surfaces on the next call.
                self._error = e
                return messages
            if message is None:
                return messages
            messages.append(message)

    def _next(self, final: bool) -> Message | None:
        self._buf = self._buf.lstrip()
        if not self._buf:
            return None
        if not self._buf.startswith("{"):
            raise MalformedMessageError(
                f"message {self._count + 1}: expected a JSON object, got {self._buf[:20]!r}"
            )
        try:
            obj, end = self._json.raw_decode(self._buf)
        except json.JSONDecodeError as e:
            if not _needs_more_input(self._buf, e.pos):
                raise MalformedMessageError(f"message {self._count + 1}: {e.msg}") from e
            if final:
                raise TruncatedStreamError(f"stream ends inside message {self._count + 1}") from e
            return None
        self._buf = self._buf[end:]
        message = message_from_dict(obj)
        self._count += 1
        return message


def decode_messages(chunks: Iterable[bytes]) -> Iterator[Message]:
    """Yield messages from an iterable of byte chunks, in stream order."""
    decoder = StreamDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.close()


def _read_chunks(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            return
        yield chunk


def iter_messages(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[Message]:
    """Yield messages read incrementally from a binary file-like object."""
    return decode_messages(_read_chunks(stream, chunk_size))


def decode_bytes(data: bytes) -> list[Message]:
    """Decode a complete in-memory stream."""
    return list(decode_messages([data]))
