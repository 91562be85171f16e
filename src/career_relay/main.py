# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from typing import Any

from mcp.server.fastmcp import FastMCP

from career_relay.errors import CrmListFailed, SweepAlreadyRunning
from career_relay.mcp import RelayMCP
from career_relay.utils.logger import logger

# Initialize Relay Logic
relay_mcp = RelayMCP()

# Initialize MCP Server
mcp = FastMCP("career-relay")


@mcp.tool()  # type: ignore[misc]
async def run_sweep(
    fields: list[str] | None = None,
    contact_ids: list[str] | None = None,
    deadline: float | None = None,
) -> str:
    """
    Run a reconciliation sweep over CRM contacts.
    Converts ephemeral file references and repairs or clears broken ones.
    Returns the sweep summary and its per-record errors.
    """
    try:
        report = await relay_mcp.run_sweep(fields=fields, contact_ids=contact_ids, deadline=deadline)
    except SweepAlreadyRunning:
        return "A sweep is already running. Use abort_sweep to stop it."
    except CrmListFailed as e:
        partial = f" Partial report: {e.report.summary()}" if e.report is not None else ""
        return f"Sweep stopped, contacts could not be listed: {e!s}.{partial}"
    except Exception as e:
        logger.exception("run_sweep tool failed")
        return f"Error running sweep: {e!s}"

    lines = [f"Sweep {'aborted' if report.aborted else 'finished'}: {report.summary()}"]
    for error in report.errors:
        lines.append(f"- contact {error.record_id} {error.field_name or '-'}: {error.message}")
    return "\n".join(lines)


@mcp.tool()  # type: ignore[misc]
async def abort_sweep() -> str:
    """
    Abort the sweep in flight, if any.
    """
    if await relay_mcp.abort_sweep():
        return "Abort requested."
    return "No sweep is running."


@mcp.tool()  # type: ignore[misc]
async def relay_file(file_id: str, field_name: str, owner_id: str | None = None) -> dict[str, Any]:
    """
    Relay one Telegram file id into durable storage and return the permanent URL.
    """
    try:
        return await relay_mcp.relay_file(file_id, field_name, owner_id)
    except Exception as e:
        return {"ok": False, "value": file_id, "error": f"{e!s}"}


@mcp.tool()  # type: ignore[misc]
async def classify_value(value: str) -> dict[str, Any]:
    """
    Classify a stored file-field value as empty, ephemeral, broken, durable or unknown.
    """
    return await relay_mcp.classify_value(value)


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
