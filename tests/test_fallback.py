"""Tests for call_external_or_fallback."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from rateit.inference.fallback import ExternalResult, call_external_or_fallback


async def test_primary_value_is_tagged_external() -> None:
    primary = AsyncMock(return_value="al akhawayn")

    result = await call_external_or_fallback(primary, lambda: "aui", timeout=1.0)

    assert result == ExternalResult(value="al akhawayn", used_external=True)
    primary.assert_awaited_once()


async def test_not_configured_uses_fallback() -> None:
    result = await call_external_or_fallback(None, lambda: "aui")

    assert result.value == "aui"
    assert result.used_external is False
    assert result.error == "not_configured"


async def test_error_uses_fallback() -> None:
    primary = AsyncMock(side_effect=ConnectionError("refused"))

    result = await call_external_or_fallback(primary, lambda: "aui", service="reasoning")

    assert result.value == "aui"
    assert result.used_external is False
    assert result.error == "refused"


async def test_error_without_message_reports_type() -> None:
    primary = AsyncMock(side_effect=ValueError())

    result = await call_external_or_fallback(primary, lambda: "aui")

    assert result.error == "ValueError"


async def test_timeout_uses_fallback() -> None:
    async def _hang() -> str:
        await asyncio.sleep(5)
        return "late"

    result = await call_external_or_fallback(_hang, lambda: "aui", timeout=0.01)

    assert result.value == "aui"
    assert result.used_external is False
    assert result.error == "timeout"
