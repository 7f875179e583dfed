"""JSON output helpers shared by all CLI commands.

Every command prints exactly one JSON envelope on stdout:

    {"success": bool, "data": {...}, "error": str | null, "meta": {...}}

Logs go to stderr so stdout stays machine-readable.
"""

import json
import sys
from typing import Any, Dict, List, NoReturn, Optional

import click

RESPONSE_VERSION = "response-v2"


def _emit(payload: Dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def emit_success(data: Dict[str, Any], *, warnings: Optional[List[str]] = None) -> None:
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}
    if warnings:
        meta["warnings"] = warnings
    _emit({"success": True, "data": data, "error": None, "meta": meta})


def emit_error(
    message: str,
    *,
    code: str,
    remediation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    data: Dict[str, Any] = {"error_code": code}
    if remediation:
        data["remediation"] = remediation
    if details:
        data["details"] = details
    _emit({"success": False, "data": data, "error": message, "meta": {"version": RESPONSE_VERSION}})
    sys.exit(1)


def emit_exception(error: Exception) -> NoReturn:
    """Report a known pipeline error, or re-raise an unknown one."""
    from business_case_ai.core.errors import error_to_response

    response = error_to_response(error)
    if response is None:
        raise error
    emit_error(response["error"], code=response["error_code"])
