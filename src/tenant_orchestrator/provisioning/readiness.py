"""Bounded readiness polling for a tenant's primary service."""

import asyncio
import logging

from tenant_orchestrator.common.exceptions import (
    InfrastructureError,
    ReadinessTimeoutError,
)
from tenant_orchestrator.provisioning.runtime import STATE_RUNNING, RuntimeDriver

logger = logging.getLogger(__name__)


class ReadinessProber:
    """Polls a container until it runs and passes its health check.

    Total wait is bounded by ``max_attempts * interval``. Cancelling the
    calling task, or setting ``cancel_event``, aborts the wait immediately.
    """

    def __init__(
        self,
        runtime: RuntimeDriver,
        max_attempts: int = 30,
        interval: float = 2.0,
    ):
        self.runtime = runtime
        self.max_attempts = max_attempts
        self.interval = interval

    async def wait_until_ready(
        self,
        container_ref: str,
        max_attempts: int | None = None,
        interval: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """Return the attempt number on which the service became healthy.

        Raises:
            ReadinessTimeoutError: After ``max_attempts`` failed attempts.
            asyncio.CancelledError: When ``cancel_event`` is set mid-wait.
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        delay = interval if interval is not None else self.interval

        for attempt in range(1, attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError("readiness wait cancelled")
            try:
                if await self._attempt(container_ref, attempt, attempts):
                    return attempt
            except InfrastructureError as exc:
                logger.warning(
                    "Attempt %d/%d: runtime error: %s", attempt, attempts, exc.message,
                    extra={"code": exc.code},
                )

            if attempt < attempts:
                await self._pause(delay, cancel_event)

        raise ReadinessTimeoutError(attempts)

    async def _attempt(self, container_ref: str, attempt: int, attempts: int) -> bool:
        state = await self.runtime.inspect_state(container_ref)
        if state != STATE_RUNNING:
            logger.info(
                "Attempt %d/%d: container not running yet (%s)",
                attempt, attempts, state,
            )
            return False
        if await self.runtime.health_check(container_ref):
            logger.info("Service ready after %d attempts", attempt)
            return True
        logger.info("Attempt %d/%d: health check failed", attempt, attempts)
        return False

    @staticmethod
    async def _pause(delay: float, cancel_event: asyncio.Event | None) -> None:
        if cancel_event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise asyncio.CancelledError("readiness wait cancelled")
