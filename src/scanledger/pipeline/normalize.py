"""Convert scanner findings into flat vulnerability records."""

from __future__ import annotations

from dataclasses import dataclass

from scanledger.errors import InvariantViolation
from scanledger.protocol.models import Finding


@dataclass(frozen=True)
class Vuln:
    """A vulnerability affecting a scanned module.

    ``called`` separates vulnerabilities whose symbol is reachable from
    ones whose package is only imported. It is not stored.
    """

    id: str
    package_path: str
    module_path: str
    version: str
    called: bool = False


def convert_finding(finding: Finding) -> Vuln:
    """Build a Vuln from the first (vulnerable-symbol) frame of a finding."""
    if not finding.trace:
        raise InvariantViolation(f"finding {finding.osv!r} has an empty trace")
    frame = finding.trace[0]
    return Vuln(
        id=finding.osv,
        package_path=frame.package,
        module_path=frame.module,
        version=frame.version,
        called=bool(frame.function),
    )


def convert_findings(findings: list[Finding]) -> list[Vuln]:
    return [convert_finding(f) for f in findings]
