"""Best-effort calls to external collaborators with a deterministic fallback.

The reasoning and moderation services improve quality but are never required:
:func:`call_external_or_fallback` always returns a value and tags whether it
came from the collaborator or from the local fallback.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ExternalResult(Generic[T]):
    """Outcome of a best-effort external call."""

    value: T
    """The collaborator's answer, or the fallback value."""

    used_external: bool
    """True only when ``value`` came from the collaborator."""

    error: str | None = None
    """Why the fallback was used, if it was."""


async def call_external_or_fallback(
    primary: Callable[[], Awaitable[T]] | None,
    fallback: Callable[[], T],
    *,
    timeout: float | None = None,
    service: str = "external",
) -> ExternalResult[T]:
    """Run ``primary`` with a timeout, degrading to ``fallback()`` on any failure.

    Args:
        primary: Coroutine factory for the collaborator call, or None when the
            collaborator is not configured.
        fallback: Deterministic, non-failing local computation.
        timeout: Seconds before the call counts as failed.
        service: Name used in log messages.

    Returns:
        ExternalResult tagged with ``used_external``. Never raises for
        collaborator failures; cancellation of the caller still propagates.
    """
    if primary is None:
        logger.debug("%s service not configured, using fallback", service)
        return ExternalResult(value=fallback(), used_external=False, error="not_configured")

    try:
        value = await asyncio.wait_for(primary(), timeout=timeout)
    except TimeoutError:
        logger.warning("%s service timed out after %ss, using fallback", service, timeout)
        return ExternalResult(value=fallback(), used_external=False, error="timeout")
    except Exception as exc:  # noqa: BLE001
        logger.warning("%s service failed, using fallback: %s", service, exc)
        return ExternalResult(value=fallback(), used_external=False, error=str(exc) or type(exc).__name__)

    return ExternalResult(value=value, used_external=True)
