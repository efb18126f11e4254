"""Scan statistics and the pluggable peak-memory probe."""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

# Given a running child pid, returns its peak memory so far in kB.
MemoryProbe = Callable[[int], int]


@dataclass
class ScanStats:
    """Monitoring information for one scanner run."""

    scan_seconds: float = 0.0
    scan_memory: int = 0  # kB
    # Time spent building the binary before a binary scan. Compare runs only.
    build_seconds: float | None = None

    def to_dict(self) -> dict[str, float | int]:
        """Serialize in the sandbox response layout."""
        return {
            "ScanSeconds": self.scan_seconds,
            "ScanMemory": self.scan_memory,
            "BuildTime": int((self.build_seconds or 0.0) * 1e9),
        }

    @classmethod
    def from_dict(cls, obj: dict) -> ScanStats:
        build_ns = obj.get("BuildTime") or 0
        return cls(
            scan_seconds=float(obj.get("ScanSeconds") or 0.0),
            scan_memory=int(obj.get("ScanMemory") or 0),
            build_seconds=build_ns / 1e9 if build_ns else None,
        )


def no_memory_probe(pid: int) -> int:
    """Probe for platforms without a usable measurement."""
    return 0


def proc_peak_rss(pid: int) -> int:
    """Peak resident set size of a running process, in kB.

    Reads ``VmHWM`` from ``/proc/<pid>/status``. A process that already
    exited, or a status file without the field, reads as 0.
    """
    try:
        status = Path(f"/proc/{pid}/status").read_text()
    except OSError:
        return 0
    for line in status.splitlines():
        if line.startswith("VmHWM:"):
            return int(line.split()[1])
    return 0


def default_memory_probe() -> MemoryProbe:
    """Pick the probe for the running platform."""
    if sys.platform.startswith("linux"):
        return proc_peak_rss
    return no_memory_probe
