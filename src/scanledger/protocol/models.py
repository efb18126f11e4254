"""Data models for the scanner JSON output stream.

The stream is a sequence of messages; each message carries exactly one of
a config header, a progress note, an OSV entry or a finding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from scanledger.errors import MalformedMessageError

# Protocol version of the JSON stream this package understands.
PROTOCOL_VERSION = "v0.1.0"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp, returning None for missing values."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedMessageError(f"expected timestamp string, got {type(value).__name__}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise MalformedMessageError(f"invalid timestamp {value!r}") from e


def _str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedMessageError(f"field {key!r} must be a string")
    return value


def _bool(obj: dict[str, Any], key: str) -> bool:
    value = obj.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MalformedMessageError(f"field {key!r} must be a boolean")
    return value


def _require_object(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedMessageError(f"{what} must be a JSON object")
    return value


@dataclass
class Config:
    """Header describing the scanner run."""

    protocol_version: str = ""
    scanner_name: str = ""
    scanner_version: str = ""
    db: str = ""
    db_last_modified: datetime | None = None
    go_version: str = ""
    goos: str = ""
    goarch: str = ""
    imports_only: bool = False

    @classmethod
    def from_dict(cls, obj: Any) -> Config:
        obj = _require_object(obj, "config")
        return cls(
            protocol_version=_str(obj, "protocol_version"),
            scanner_name=_str(obj, "scanner_name"),
            scanner_version=_str(obj, "scanner_version"),
            db=_str(obj, "db"),
            db_last_modified=parse_timestamp(obj.get("db_last_modified")),
            go_version=_str(obj, "go_version"),
            goos=_str(obj, "goos"),
            goarch=_str(obj, "goarch"),
            imports_only=_bool(obj, "imports_only"),
        )


@dataclass
class Progress:
    """Informational progress note."""

    message: str = ""
    timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, obj: Any) -> Progress:
        obj = _require_object(obj, "progress")
        return cls(message=_str(obj, "message"), timestamp=parse_timestamp(obj.get("time")))


@dataclass
class OSVEntry:
    """An entry of the vulnerability database the scanner consulted."""

    id: str
    modified: datetime | None = None
    published: datetime | None = None
    aliases: list[str] = field(default_factory=list)
    summary: str = ""
    details: str = ""
    affected: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, obj: Any) -> OSVEntry:
        obj = _require_object(obj, "osv")
        return cls(
            id=_str(obj, "id"),
            modified=parse_timestamp(obj.get("modified")),
            published=parse_timestamp(obj.get("published")),
            aliases=list(obj.get("aliases") or []),
            summary=_str(obj, "summary"),
            details=_str(obj, "details"),
            affected=list(obj.get("affected") or []),
            raw=obj,
        )


@dataclass
class Position:
    """Source position of a trace frame. Valid when line > 0."""

    filename: str = ""
    offset: int = 0
    line: int = 0
    column: int = 0

    def is_valid(self) -> bool:
        return self.line > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "offset": self.offset,
            "line": self.line,
            "column": self.column,
        }

    @classmethod
    def from_dict(cls, obj: Any) -> Position:
        obj = _require_object(obj, "position")
        return cls(
            filename=_str(obj, "filename"),
            offset=int(obj.get("offset") or 0),
            line=int(obj.get("line") or 0),
            column=int(obj.get("column") or 0),
        )


@dataclass
class Frame:
    """One entry of a finding trace.

    Standard library packages use the module path "stdlib".
    """

    module: str
    version: str = ""
    package: str = ""
    function: str = ""
    receiver: str = ""
    position: Position | None = None

    def symbol(self) -> str:
        """Return the qualified symbol name, e.g. "Client.Get"."""
        if self.receiver:
            return f"{self.receiver}.{self.function}"
        return self.function

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"module": self.module}
        for key in ("version", "package", "function", "receiver"):
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.position is not None:
            data["position"] = self.position.to_dict()
        return data

    @classmethod
    def from_dict(cls, obj: Any) -> Frame:
        obj = _require_object(obj, "frame")
        position = obj.get("position")
        return cls(
            module=_str(obj, "module"),
            version=_str(obj, "version"),
            package=_str(obj, "package"),
            function=_str(obj, "function"),
            receiver=_str(obj, "receiver"),
            position=Position.from_dict(position) if position is not None else None,
        )


@dataclass
class Finding:
    """A vulnerability id plus the trace that reaches it.

    Frames run from the vulnerable symbol outward to the entry point. In
    binary mode the trace holds a single frame without position. When a
    vulnerable package is only imported, the single frame has no function.
    """

    osv: str
    fixed_version: str = ""
    trace: list[Frame] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"osv": self.osv}
        if self.fixed_version:
            data["fixed_version"] = self.fixed_version
        if self.trace:
            data["trace"] = [frame.to_dict() for frame in self.trace]
        return data

    @classmethod
    def from_dict(cls, obj: Any) -> Finding:
        obj = _require_object(obj, "finding")
        trace = obj.get("trace") or []
        if not isinstance(trace, list):
            raise MalformedMessageError("finding trace must be a list")
        return cls(
            osv=_str(obj, "osv"),
            fixed_version=_str(obj, "fixed_version"),
            trace=[Frame.from_dict(frame) for frame in trace],
        )


@dataclass
class Message:
    """Base of the four message variants. ``kind`` names the payload key."""

    kind: ClassVar[str] = ""


@dataclass
class ConfigMessage(Message):
    kind: ClassVar[str] = "config"
    config: Config


@dataclass
class ProgressMessage(Message):
    kind: ClassVar[str] = "progress"
    progress: Progress


@dataclass
class OSVMessage(Message):
    kind: ClassVar[str] = "osv"
    osv: OSVEntry


@dataclass
class FindingMessage(Message):
    kind: ClassVar[str] = "finding"
    finding: Finding


_VARIANTS: dict[str, tuple[type[Message], Any]] = {
    "config": (ConfigMessage, Config.from_dict),
    "progress": (ProgressMessage, Progress.from_dict),
    "osv": (OSVMessage, OSVEntry.from_dict),
    "finding": (FindingMessage, Finding.from_dict),
}

MESSAGE_KINDS = tuple(_VARIANTS)


def message_from_dict(obj: Any) -> Message:
    """Build the message variant for one decoded JSON object.

    Exactly one of the payload keys must hold a non-null value; other keys
    are ignored.
    """
    if not isinstance(obj, dict):
        raise MalformedMessageError(f"message must be a JSON object, got {type(obj).__name__}")
    populated = [key for key in MESSAGE_KINDS if obj.get(key) is not None]
    if len(populated) != 1:
        found = ", ".join(populated) or "none"
        raise MalformedMessageError(
            f"message must have exactly one of {', '.join(MESSAGE_KINDS)}; found: {found}"
        )
    kind = populated[0]
    variant, parse = _VARIANTS[kind]
    try:
        payload = parse(obj[kind])
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"invalid {kind} payload: {e}") from e
    return variant(payload)
