"""Tests for the readiness prober."""

import asyncio

import pytest

from tenant_orchestrator.common.exceptions import ReadinessTimeoutError, RuntimeDriverError
from tenant_orchestrator.provisioning.readiness import ReadinessProber
from tenant_orchestrator.provisioning.runtime import InMemoryRuntime


class FlakyRuntime(InMemoryRuntime):
    """Fails the first ``failures`` state inspections."""

    failures = 2

    async def inspect_state(self, container_ref: str) -> str:
        if self.failures:
            self.failures -= 1
            raise RuntimeDriverError(["inspect", container_ref], stderr="engine hiccup")
        return await super().inspect_state(container_ref)


async def started_app(rt: InMemoryRuntime) -> str:
    await rt.start_stack("/m/docker-compose-tenant-abc.yml")
    return await rt.find_container("n8n-tenant-abc")


class TestReadinessProber:
    async def test_ready_first_attempt(self):
        rt = InMemoryRuntime()
        ref = await started_app(rt)
        assert await ReadinessProber(rt, interval=0).wait_until_ready(ref) == 1

    async def test_ready_after_failures(self):
        rt = InMemoryRuntime(healthy_after=3)
        ref = await started_app(rt)
        assert await ReadinessProber(rt, interval=0).wait_until_ready(ref) == 4

    async def test_timeout_after_max_attempts(self):
        rt = InMemoryRuntime(healthy_after=100)
        ref = await started_app(rt)
        prober = ReadinessProber(rt, max_attempts=5, interval=0)
        with pytest.raises(ReadinessTimeoutError) as exc:
            await prober.wait_until_ready(ref)
        assert exc.value.attempts == 5
        assert exc.value.code == "READINESS_TIMEOUT"
        assert len([c for c in rt.calls if c[0] == "inspect_state"]) == 5

    async def test_per_call_overrides(self):
        rt = InMemoryRuntime(healthy_after=100)
        ref = await started_app(rt)
        prober = ReadinessProber(rt, max_attempts=30, interval=5.0)
        with pytest.raises(ReadinessTimeoutError) as exc:
            await prober.wait_until_ready(ref, max_attempts=2, interval=0)
        assert exc.value.attempts == 2

    async def test_runtime_errors_are_retried(self):
        rt = FlakyRuntime()
        ref = await started_app(rt)
        assert await ReadinessProber(rt, interval=0).wait_until_ready(ref) == 3

    async def test_persistent_runtime_errors_time_out(self):
        rt = FlakyRuntime()
        rt.failures = 100
        ref = await started_app(rt)
        prober = ReadinessProber(rt, max_attempts=4, interval=0)
        with pytest.raises(ReadinessTimeoutError) as exc:
            await prober.wait_until_ready(ref)
        assert exc.value.attempts == 4
        assert rt.failures == 96

    async def test_missing_container_never_ready(self):
        rt = InMemoryRuntime()
        prober = ReadinessProber(rt, max_attempts=3, interval=0)
        with pytest.raises(ReadinessTimeoutError):
            await prober.wait_until_ready("deadbeef")

    async def test_cancel_event_preset(self):
        rt = InMemoryRuntime()
        ref = await started_app(rt)
        event = asyncio.Event()
        event.set()
        with pytest.raises(asyncio.CancelledError):
            await ReadinessProber(rt, interval=0).wait_until_ready(ref, cancel_event=event)
        assert not [c for c in rt.calls if c[0] == "inspect_state"]

    async def test_cancel_event_interrupts_pause(self):
        rt = InMemoryRuntime(healthy_after=100)
        ref = await started_app(rt)
        event = asyncio.Event()
        prober = ReadinessProber(rt, max_attempts=30, interval=60.0)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            event.set()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(asyncio.CancelledError):
            await prober.wait_until_ready(ref, cancel_event=event)
        await canceller

    async def test_task_cancellation(self):
        rt = InMemoryRuntime(healthy_after=100)
        ref = await started_app(rt)
        prober = ReadinessProber(rt, max_attempts=30, interval=60.0)
        task = asyncio.create_task(prober.wait_until_ready(ref))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
