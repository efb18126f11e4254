"""Scan modes and the scanner flags they map to."""

from enum import Enum


class ScanMode(Enum):
    """How a module is analyzed. The value is what gets stored in scan_mode."""

    SOURCE = "SOURCE"
    BINARY = "BINARY"
    COMPARE = "COMPARE"
    COMPARE_BINARY = "COMPARE - BINARY"
    COMPARE_SOURCE = "COMPARE - SOURCE"

    @property
    def flag(self) -> str:
        """The scanner ``-mode`` flag for this mode."""
        if self in (ScanMode.BINARY, ScanMode.COMPARE_BINARY):
            return "binary"
        if self is ScanMode.COMPARE:
            raise ValueError("compare mode runs both source and binary scans")
        return "source"

    @classmethod
    def parse(cls, value: "str | ScanMode") -> "ScanMode":
        """Accept an enum member, its value or its name, case-insensitively."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        if text.upper() == "GOVULNCHECK":
            return cls.SOURCE
        for mode in cls:
            if text.upper() in (mode.value, mode.name):
                return mode
        raise ValueError(f"unknown scan mode: {value!r}")
