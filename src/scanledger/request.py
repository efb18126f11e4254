"""Scan requests and parsing of module@version targets."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlencode

from scanledger.errors import RequestError
from scanledger.modes import ScanMode

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ScanRequest:
    """One module version to scan, plus how to scan it."""

    module: str
    version: str
    mode: ScanMode = ScanMode.SOURCE
    imported_by: int = 0
    suffix: str = ""
    insecure: bool = False  # run outside the sandbox
    serve: bool = False  # return the result instead of persisting it

    def name(self) -> str:
        """Task name; the job queue keeps one in-flight task per name."""
        return f"{self.module}@{self.version}"

    def path(self) -> str:
        return f"{self.module}/@v/{self.version}"

    def params(self) -> str:
        """Query string carrying the request parameters."""
        params = {
            "importedby": self.imported_by,
            "mode": self.mode.value,
            "insecure": str(self.insecure).lower(),
            "serve": str(self.serve).lower(),
        }
        if self.suffix:
            params["suffix"] = self.suffix
        return urlencode(params)


def parse_module_url_path(path: str) -> tuple[str, str]:
    """Split a target into (module, version).

    Accepted forms, as the module proxy accepts them:
      - <module>/@v/<version>
      - <module>@<version>
      - <module>/@latest
    """
    path = path.strip().strip("/")
    if not path:
        raise RequestError("empty module path")
    if path.endswith("/@latest"):
        module, version = path.removesuffix("/@latest"), "latest"
    elif "/@v/" in path:
        module, _, version = path.partition("/@v/")
    elif "@" in path:
        module, _, version = path.rpartition("@")
    else:
        raise RequestError(f"invalid path {path!r}: missing version")
    if not module:
        raise RequestError(f"invalid path {path!r}: missing module")
    if not version or "/" in version:
        raise RequestError(f"invalid path {path!r}: bad version {version!r}")
    return module, version


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise RequestError(f"invalid {name!r} value: {value!r}")


def parse_request(path: str, params: Mapping[str, str]) -> ScanRequest:
    """Build a ScanRequest from a target path and query parameters.

    ``importedby`` is required and must be non-negative.
    """
    module, version = parse_module_url_path(path)
    raw = params.get("importedby")
    if raw is None:
        raise RequestError('missing or negative "importedby" query param')
    try:
        imported_by = int(raw)
    except ValueError as e:
        raise RequestError(f'invalid "importedby" value: {raw!r}') from e
    if imported_by < 0:
        raise RequestError('missing or negative "importedby" query param')
    try:
        mode = ScanMode.parse(params.get("mode") or ScanMode.SOURCE)
    except ValueError as e:
        raise RequestError(str(e)) from e
    return ScanRequest(
        module=module,
        version=version,
        mode=mode,
        imported_by=imported_by,
        suffix=params.get("suffix", ""),
        insecure=_parse_bool("insecure", params.get("insecure", "")),
        serve=_parse_bool("serve", params.get("serve", "")),
    )
