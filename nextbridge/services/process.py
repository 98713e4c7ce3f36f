"""
Process execution and endpoint discovery.

- run_command: run a command to completion (used by the build step)
- find_free_port: first bindable port at or above a start port
- ProcessSpawner: start the dev/serve process on a free port and wait until it
  accepts TCP connections
"""

import asyncio
import logging
import shutil
import socket
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol, Sequence

from nextbridge.core.command import CommandTemplate
from nextbridge.core.config import BridgeConfig
from nextbridge.core.exceptions import (
    CommandFailedError,
    CommandNotFoundError,
    SpawnError,
)

logger = logging.getLogger("nextbridge.process")

DEFAULT_HOST = "localhost"
MAX_PORT = 65535


def locate(executable: str) -> str:
    path = shutil.which(executable)
    if path is None:
        raise CommandNotFoundError(executable)
    return path


async def run_command(argv: Sequence[str], workdir: str, env: Mapping[str, str]) -> None:
    """
    Run argv in workdir, inheriting stdio.

    Raises:
        CommandNotFoundError: argv[0] is not on PATH
        CommandFailedError: non-zero exit status
    """
    executable = locate(argv[0])
    logger.debug("Running %s in %s", " ".join(argv), workdir)
    process = await asyncio.create_subprocess_exec(
        executable, *argv[1:], cwd=workdir, env=dict(env)
    )
    returncode = await process.wait()
    if returncode != 0:
        raise CommandFailedError(argv[0], returncode)


def port_available(port: int, host: str = "0.0.0.0") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_free_port(start_port: int) -> int:
    for port in range(start_port, MAX_PORT + 1):
        if port_available(port):
            return port
    raise RuntimeError(f"No free port available at or above {start_port}")


@dataclass
class SpawnedProcess:
    process: asyncio.subprocess.Process
    endpoint: str
    port: int


OnSpawn = Callable[[asyncio.subprocess.Process], None]


class Spawner(Protocol):
    async def spawn(
        self,
        command: CommandTemplate,
        environment: Mapping[str, str],
        on_spawn: Optional[OnSpawn] = None,
    ) -> SpawnedProcess: ...


class ProcessSpawner:
    """
    Spawns a resolved command on a dynamically allocated port.

    The endpoint is only returned once the port accepts connections; a process
    that exits first, or never listens within READINESS_TIMEOUT, is a spawn failure.
    `on_spawn` receives the child as soon as it exists; the child is terminated
    if spawning does not complete for any reason, cancellation included.
    """

    def __init__(self, config: BridgeConfig, workdir: Optional[str] = None):
        self.config = config
        self.workdir = workdir

    def build_argv(self, command: CommandTemplate, port: int) -> list[str]:
        argv = command.argv() + ["--port", str(port)]
        if command.hostname:
            argv += ["--hostname", command.hostname]
        return argv

    async def spawn(
        self,
        command: CommandTemplate,
        environment: Mapping[str, str],
        on_spawn: Optional[OnSpawn] = None,
    ) -> SpawnedProcess:
        host = command.hostname or DEFAULT_HOST
        try:
            port = find_free_port(self.config.DEV_START_PORT)
            argv = self.build_argv(command, port)
            executable = locate(argv[0])
        except (CommandNotFoundError, RuntimeError) as e:
            raise SpawnError(str(command), str(e)) from e

        env = dict(environment)
        env["PORT"] = str(port)

        logger.info("Starting %s on port %s", " ".join(argv), port)
        try:
            process = await asyncio.create_subprocess_exec(
                executable, *argv[1:], cwd=self.workdir, env=env
            )
        except OSError as e:
            raise SpawnError(str(command), str(e)) from e

        try:
            if on_spawn is not None:
                on_spawn(process)
            await self.wait_until_ready(process, host, port)
        except BaseException:
            await asyncio.shield(terminate(process))
            raise

        endpoint = f"http://{host}:{port}"
        logger.info("Process %s is listening on %s", process.pid, endpoint)
        return SpawnedProcess(process=process, endpoint=endpoint, port=port)

    async def wait_until_ready(
        self, process: asyncio.subprocess.Process, host: str, port: int
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.READINESS_TIMEOUT
        while True:
            if process.returncode is not None:
                raise SpawnError(
                    f"pid {process.pid}", f"exited with code {process.returncode} before listening"
                )
            if await _can_connect(host, port):
                return
            if loop.time() >= deadline:
                raise SpawnError(
                    f"pid {process.pid}",
                    f"not listening on {host}:{port} after {self.config.READINESS_TIMEOUT}s",
                )
            await asyncio.sleep(self.config.READINESS_INTERVAL)


async def _can_connect(host: str, port: int) -> bool:
    try:
        _, writer = await asyncio.open_connection(host, port)
    except OSError:
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def terminate(process: asyncio.subprocess.Process, timeout: float = 5.0) -> None:
    """Terminate a child, escalating to kill after `timeout`."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
        await asyncio.wait_for(process.wait(), timeout)
    except ProcessLookupError:
        return
    except asyncio.TimeoutError:
        logger.warning("Process %s did not exit after %ss, killing", process.pid, timeout)
        process.kill()
        await process.wait()
