"""Scan-result pipeline: run, normalize, fingerprint and aggregate."""

from .aggregate import add_error, build_compare_results, build_result, row_work_version
from .compare import (
    BinaryBuilder,
    CompareDiff,
    compare_package,
    diff_pair,
    make_go_builder,
    run_compare,
)
from .normalize import Vuln, convert_finding, convert_findings
from .runner import ScanOutput, ScanRunner, vulndb_uri
from .sandbox import (
    ComparePair,
    CompareResponse,
    SandboxResponse,
    marshal_response,
    unmarshal_compare_response,
    unmarshal_sandbox_response,
)
from .sortversion import sort_version
from .stats import (
    MemoryProbe,
    ScanStats,
    default_memory_probe,
    no_memory_probe,
    proc_peak_rss,
)
from .workversion import (
    VulnDBError,
    WorkState,
    WorkVersion,
    compute_current,
    should_skip,
    toolchain_version,
    vulndb_last_modified,
    work_versions_equal,
)

__all__ = [
    "BinaryBuilder",
    "CompareDiff",
    "ComparePair",
    "CompareResponse",
    "MemoryProbe",
    "SandboxResponse",
    "ScanOutput",
    "ScanRunner",
    "ScanStats",
    "Vuln",
    "VulnDBError",
    "WorkState",
    "WorkVersion",
    "add_error",
    "build_compare_results",
    "build_result",
    "compare_package",
    "compute_current",
    "convert_finding",
    "convert_findings",
    "default_memory_probe",
    "diff_pair",
    "make_go_builder",
    "marshal_response",
    "no_memory_probe",
    "proc_peak_rss",
    "row_work_version",
    "run_compare",
    "should_skip",
    "sort_version",
    "toolchain_version",
    "unmarshal_compare_response",
    "unmarshal_sandbox_response",
    "vulndb_last_modified",
    "vulndb_uri",
    "work_versions_equal",
]
