"""Container runtime drivers.

``DockerDriver`` talks to the docker engine through the SDK and runs compose
through the CLI. ``InMemoryRuntime`` keeps the same contract in process memory
for tests and dry runs. The orchestrator only sees the ``RuntimeDriver`` protocol.

Naming conventions shared with the stack template:
    network     tenant_<tenant_id>
    containers  <service>-tenant-<tenant_id>   (service ∈ n8n, postgres, redis)
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

import docker
from docker.errors import APIError, DockerException, NotFound
from docker.types import IPAMConfig, IPAMPool

from tenant_orchestrator.common.exceptions import RuntimeDriverError

logger = logging.getLogger(__name__)

STATE_RUNNING = "running"
STATE_EXITED = "exited"
STATE_NOT_FOUND = "not_found"

# role → compose service name
MANAGED_SERVICES = {
    "app": "n8n",
    "database": "postgres",
    "cache": "redis",
}


def network_name(tenant_id: str) -> str:
    return f"tenant_{tenant_id}"


def container_selector(role: str, tenant_id: str) -> str:
    return f"{MANAGED_SERVICES[role]}-tenant-{tenant_id}"


class RuntimeDriver(Protocol):
    async def create_network(self, tenant_id: str, subnet: str) -> bool: ...

    async def remove_network(self, tenant_id: str) -> None: ...

    async def start_stack(self, manifest_path: str) -> None: ...

    async def stop_stack(self, manifest_path: str, remove_volumes: bool = True) -> None: ...

    async def find_container(self, selector: str) -> Optional[str]: ...

    async def inspect_state(self, container_ref: str) -> str: ...

    async def health_check(self, container_ref: str) -> bool: ...


@dataclass
class CommandResult:
    """Outcome of a single CLI invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class DockerDriver:
    """Drives the local docker engine.

    Networks and containers go through the docker SDK, run in the default
    executor. Compose stacks go through the CLI, which the SDK does not cover.
    """

    def __init__(
        self,
        binary: str = "docker",
        timeout: float = 120.0,
        health_url: str = "http://localhost:5678/healthz",
        client: Optional[docker.DockerClient] = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self.health_url = health_url
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env(timeout=int(self.timeout))
        return self._client

    async def _engine(
        self,
        command: list[str],
        call: Callable[[], Any],
        passthrough: tuple[type[Exception], ...] = (NotFound,),
    ) -> Any:
        """Run a blocking SDK call off the event loop.

        Exceptions in ``passthrough`` reach the caller untouched; any other
        engine failure becomes ``RuntimeDriverError``.
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, call)
        except passthrough:
            raise
        except (DockerException, OSError) as exc:
            raise RuntimeDriverError([self.binary, *command], stderr=str(exc)) from exc

    async def _run(self, *args: str, timeout: float | None = None) -> CommandResult:
        """Run ``docker <args>`` and capture its output.

        A command that outlives the timeout is killed and reported as exit 124.
        Cancelling the caller kills the command before the cancellation propagates.
        """
        cmd = [self.binary, *args]
        limit = timeout or self.timeout
        logger.debug("Running %s", " ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise RuntimeDriverError(cmd, stderr=str(exc)) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            await _kill(process)
            return CommandResult(124, stderr=f"timed out after {limit}s")
        except BaseException:
            await _kill(process)
            raise

        return CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    async def _check(self, *args: str) -> CommandResult:
        result = await self._run(*args)
        if not result.ok:
            raise RuntimeDriverError([self.binary, *args], stderr=result.stderr)
        return result

    # ── Networks ──

    async def create_network(self, tenant_id: str, subnet: str) -> bool:
        name = network_name(tenant_id)
        command = ["network", "create", name]
        existing = await self._engine(
            command, lambda: self.client.networks.list(names=[name])
        )
        if existing:
            logger.info("Docker network already exists", extra={"network": name})
            return False

        ipam = IPAMConfig(pool_configs=[IPAMPool(subnet=subnet)])
        try:
            await self._engine(
                command,
                lambda: self.client.networks.create(
                    name, driver="bridge", internal=True, ipam=ipam
                ),
                passthrough=(APIError,),
            )
        except APIError as exc:
            if exc.status_code == 409:
                logger.info("Docker network already exists", extra={"network": name})
                return False
            raise RuntimeDriverError([self.binary, *command], stderr=str(exc)) from exc

        logger.info("Docker network created", extra={"network": name, "subnet": subnet})
        return True

    async def remove_network(self, tenant_id: str) -> None:
        name = network_name(tenant_id)
        try:
            await self._engine(
                ["network", "rm", name],
                lambda: self.client.networks.get(name).remove(),
            )
        except NotFound:
            logger.info("Docker network already absent", extra={"network": name})
            return
        logger.info("Docker network removed", extra={"network": name})

    # ── Stacks ──

    async def start_stack(self, manifest_path: str) -> None:
        await self._check("compose", "-f", manifest_path, "up", "-d")

    async def stop_stack(self, manifest_path: str, remove_volumes: bool = True) -> None:
        if not os.path.exists(manifest_path):
            logger.info("No manifest at %s, stack already gone", manifest_path)
            return
        if remove_volumes:
            await self._check("compose", "-f", manifest_path, "down", "-v")
        else:
            await self._check("compose", "-f", manifest_path, "stop")

    # ── Containers ──

    async def find_container(self, selector: str) -> Optional[str]:
        containers = await self._engine(
            ["ps", "-f", f"name={selector}"],
            lambda: self.client.containers.list(filters={"name": selector}),
        )
        return containers[0].id if containers else None

    async def inspect_state(self, container_ref: str) -> str:
        try:
            container = await self._engine(
                ["inspect", container_ref],
                lambda: self.client.containers.get(container_ref),
                passthrough=(DockerException, OSError),
            )
        except NotFound:
            return STATE_NOT_FOUND
        except (DockerException, OSError) as exc:
            logger.warning("Cannot inspect %s: %s", container_ref, exc)
            return STATE_NOT_FOUND
        return container.status or STATE_NOT_FOUND

    async def health_check(self, container_ref: str) -> bool:
        wget = ["wget", "--no-verbose", "--tries=1", "--spider", self.health_url]
        try:
            result = await self._engine(
                ["exec", container_ref, *wget],
                lambda: self.client.containers.get(container_ref).exec_run(wget),
                passthrough=(APIError,),
            )
        except APIError as exc:
            # Gone or not running: unhealthy, not an engine failure.
            logger.debug("Health check on %s rejected: %s", container_ref, exc)
            return False
        return result.exit_code == 0


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


@dataclass
class _FakeContainer:
    id: str
    state: str = STATE_RUNNING
    healthy_after: int = 0  # health checks that fail before the first pass
    checks: int = 0


@dataclass
class InMemoryRuntime:
    """Process-local stand-in for the container engine.

    ``fail_on`` names operations that should raise ``RuntimeDriverError``;
    ``healthy_after`` delays the app container's first passing health check.
    """

    fail_on: set[str] = field(default_factory=set)
    healthy_after: int = 0
    networks: dict[str, str] = field(default_factory=dict)
    stacks: dict[str, str] = field(default_factory=dict)  # manifest → tenant_id
    containers: dict[str, _FakeContainer] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    _counter: int = 0

    def _maybe_fail(self, operation: str, target: str) -> None:
        self.calls.append((operation, target))
        if operation in self.fail_on:
            raise RuntimeDriverError([operation, target], stderr=f"simulated {operation} failure")

    async def create_network(self, tenant_id: str, subnet: str) -> bool:
        self._maybe_fail("create_network", tenant_id)
        name = network_name(tenant_id)
        if name in self.networks:
            return False
        self.networks[name] = subnet
        return True

    async def remove_network(self, tenant_id: str) -> None:
        self._maybe_fail("remove_network", tenant_id)
        self.networks.pop(network_name(tenant_id), None)

    async def start_stack(self, manifest_path: str) -> None:
        self._maybe_fail("start_stack", manifest_path)
        tenant_id = _tenant_id_from_manifest(manifest_path)
        self.stacks[manifest_path] = tenant_id
        for role in MANAGED_SERVICES:
            name = container_selector(role, tenant_id)
            existing = self.containers.get(name)
            if existing is not None:
                existing.state = STATE_RUNNING
                continue
            self._counter += 1
            self.containers[name] = _FakeContainer(
                id=f"{self._counter:012x}",
                healthy_after=self.healthy_after if role == "app" else 0,
            )

    async def stop_stack(self, manifest_path: str, remove_volumes: bool = True) -> None:
        self._maybe_fail("stop_stack", manifest_path)
        tenant_id = self.stacks.get(manifest_path)
        if tenant_id is None:
            return
        if remove_volumes:
            del self.stacks[manifest_path]
        for role in MANAGED_SERVICES:
            name = container_selector(role, tenant_id)
            if remove_volumes:
                self.containers.pop(name, None)
            elif name in self.containers:
                self.containers[name].state = STATE_EXITED

    async def find_container(self, selector: str) -> Optional[str]:
        self._maybe_fail("find_container", selector)
        container = self.containers.get(selector)
        return container.id if container else None

    async def inspect_state(self, container_ref: str) -> str:
        self._maybe_fail("inspect_state", container_ref)
        container = self._by_id(container_ref)
        return container.state if container else STATE_NOT_FOUND

    async def health_check(self, container_ref: str) -> bool:
        container = self._by_id(container_ref)
        if container is None or container.state != STATE_RUNNING:
            return False
        container.checks += 1
        return container.checks > container.healthy_after

    def remove_container(self, selector: str) -> None:
        """Drop a container behind the orchestrator's back."""
        self.containers.pop(selector, None)

    def _by_id(self, container_ref: str) -> Optional[_FakeContainer]:
        for container in self.containers.values():
            if container.id == container_ref:
                return container
        return None


def _tenant_id_from_manifest(manifest_path: str) -> str:
    stem = os.path.basename(manifest_path)
    return stem.removeprefix("docker-compose-tenant-").removesuffix(".yml")
