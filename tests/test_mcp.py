import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from career_relay.config import RelayConfig
from career_relay.mcp import RelayMCP
from career_relay.models.fields import FieldName
from career_relay.models.files import RelayResult
from career_relay.models.report import SweepReport


@pytest.fixture
def mock_services() -> Any:
    services = MagicMock()
    services.config = RelayConfig(_env_file=None, sweep_deadline=120.0)
    services.sweep.run = AsyncMock(return_value=SweepReport(records_scanned=3))
    services.sweep.abort = MagicMock(return_value=True)
    services.relay.relay = AsyncMock(return_value=RelayResult(ok=True, value="https://files/x.pdf"))
    services.aclose = AsyncMock()
    return services


@pytest.mark.asyncio
async def test_mcp_run_sweep_uses_configured_deadline(mock_services: Any) -> None:
    mcp = RelayMCP(services=mock_services)

    report = await mcp.run_sweep()

    assert report.records_scanned == 3
    mock_services.sweep.run.assert_awaited_with(fields=None, crm_filter=None, deadline=120.0)


@pytest.mark.asyncio
async def test_mcp_run_sweep_restricted_to_contacts(mock_services: Any) -> None:
    mcp = RelayMCP(services=mock_services)

    await mcp.run_sweep(fields=["resume"], contact_ids=["42", "43"], deadline=5.0)

    mock_services.sweep.run.assert_awaited_with(fields=["resume"], crm_filter={"ID": ["42", "43"]}, deadline=5.0)


@pytest.mark.asyncio
async def test_mcp_abort(mock_services: Any) -> None:
    mcp = RelayMCP(services=mock_services)

    assert await mcp.abort_sweep() is True
    mock_services.sweep.abort.assert_called_once()


@pytest.mark.asyncio
async def test_mcp_relay_file(mock_services: Any) -> None:
    mcp = RelayMCP(services=mock_services)

    result = await mcp.relay_file("BQACAgIAAxkB", "diploma", "42")

    mock_services.relay.relay.assert_awaited_with("BQACAgIAAxkB", FieldName.DIPLOMA, "42")
    assert result == {"ok": True, "value": "https://files/x.pdf", "file": None, "error": None}


@pytest.mark.asyncio
async def test_mcp_relay_file_rejects_unknown_field(mock_services: Any) -> None:
    mcp = RelayMCP(services=mock_services)

    with pytest.raises(ValueError):
        await mcp.relay_file("BQACAgIAAxkB", "photo")


@pytest.mark.asyncio
async def test_mcp_classify_value(config: RelayConfig) -> None:
    mcp = RelayMCP(config=config)

    result = await mcp.classify_value("contact-pending_resume_2025-07-20_ab12cd34.pdf")

    assert result["kind"] == "broken"
    assert result["marker"] == "contact-pending_"
    await mcp.shutdown()


@pytest.mark.asyncio
async def test_mcp_builds_services_once(mock_services: Any) -> None:
    with patch("career_relay.mcp.RelayFactory.build", return_value=mock_services) as mock_build:
        mcp = RelayMCP()

        results = await asyncio.gather(mcp.get_services(), mcp.get_services(), mcp.get_services())

    assert all(r is mock_services for r in results)
    mock_build.assert_called_once_with(None)


@pytest.mark.asyncio
async def test_mcp_shutdown(mock_services: Any) -> None:
    mcp = RelayMCP(services=mock_services)

    await mcp.shutdown()
    mock_services.aclose.assert_awaited_once()

    # A second shutdown is a no-op
    await mcp.shutdown()
    mock_services.aclose.assert_awaited_once()
