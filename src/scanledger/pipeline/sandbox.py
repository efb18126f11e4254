"""Responses returned by scans executed behind the isolation boundary.

A sandboxed run prints one JSON document: either ``{"Error": "..."}`` or
the findings and stats of the run(s).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from scanledger.errors import MalformedMessageError, ScannerExecutionError
from scanledger.protocol import Finding

from .stats import ScanStats


@dataclass
class SandboxResponse:
    """Raw findings and stats of one scanner run."""

    findings: list[Finding] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "Findings": [f.to_dict() for f in self.findings],
            "Stats": self.stats.to_dict(),
        }
        if self.error:
            data["Error"] = self.error
        return data

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> SandboxResponse:
        return cls(
            findings=[Finding.from_dict(f) for f in obj.get("Findings") or []],
            stats=ScanStats.from_dict(obj.get("Stats") or {}),
            error=obj.get("Error") or "",
        )


@dataclass
class ComparePair:
    """Binary-mode and source-mode results for one package."""

    binary_results: SandboxResponse = field(default_factory=SandboxResponse)
    source_results: SandboxResponse = field(default_factory=SandboxResponse)
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "BinaryResults": self.binary_results.to_dict(),
            "SourceResults": self.source_results.to_dict(),
            "Error": self.error,
        }

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> ComparePair:
        return cls(
            binary_results=SandboxResponse.from_dict(obj.get("BinaryResults") or {}),
            source_results=SandboxResponse.from_dict(obj.get("SourceResults") or {}),
            error=obj.get("Error") or "",
        )


@dataclass
class CompareResponse:
    """Compare results keyed by package import path."""

    findings_for_mod: dict[str, ComparePair] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"FindingsForMod": {k: v.to_dict() for k, v in self.findings_for_mod.items()}}

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> CompareResponse:
        pairs = obj.get("FindingsForMod") or {}
        return cls(findings_for_mod={k: ComparePair.from_dict(v) for k, v in pairs.items()})


def _load(output: bytes) -> dict[str, Any]:
    try:
        obj = json.loads(output)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessageError(f"invalid sandbox response: {e}") from e
    if not isinstance(obj, dict):
        raise MalformedMessageError("sandbox response must be a JSON object")
    if obj.get("Error"):
        raise ScannerExecutionError(obj["Error"])
    return obj


def unmarshal_sandbox_response(output: bytes) -> SandboxResponse:
    """Parse a sandboxed single-mode run. A top-level Error is raised."""
    return SandboxResponse.from_dict(_load(output))


def unmarshal_compare_response(output: bytes) -> CompareResponse:
    """Parse a sandboxed compare run. A top-level Error is raised."""
    return CompareResponse.from_dict(_load(output))


def marshal_response(response: SandboxResponse | CompareResponse) -> bytes:
    return json.dumps(response.to_dict()).encode()
