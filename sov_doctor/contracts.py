"""Versioned contracts for sov-doctor JSON outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sov_doctor import __version__ as TOOL_VERSION

CONTRACT_VERSIONS = {
    "sov_doctor.process": "1.0.0",
    "sov_doctor.inspect": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    tool: str,
    step: str,
    input_file: str,
    status: str = "ok",
    output_file: str | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "step": step,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": input_file,
        "output_file": output_file,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def wrap_payload(name: str, body: dict[str, Any], run_summary: dict[str, Any]) -> dict[str, Any]:
    contract = build_contract(name)
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        **body,
        "run_summary": run_summary,
    }
