"""
IntentController

Drives one managed function through its intents:

    Idle -> Building -> Built                 (build)
    Idle -> Spawning -> Running -> Stopped    (run / stop)

The descriptor is only rewritten after the asynchronous step it depends on
(build, spawn + endpoint discovery) has succeeded.
"""

import copy
import enum
import logging
from typing import List, Optional

from nextbridge.core.command import INTENT_DEVELOP, INTENT_SERVE, resolve
from nextbridge.core.config import BridgeConfig, PluginConfig
from nextbridge.core.exceptions import (
    BuildFailedError,
    ConcurrencyError,
    DockerModeUnsupportedError,
    MissingEndpointError,
)
from nextbridge.models.descriptor import FunctionDescriptor, ServiceDescriptor

from .builder import Builder
from .mutator import apply_intent
from .process import SpawnedProcess, Spawner, terminate
from .routing import plan_routing
from .signals import SignalManager

logger = logging.getLogger("nextbridge.controller")


class BuildState(str, enum.Enum):
    IDLE = "idle"
    BUILDING = "building"
    BUILT = "built"


class RunState(str, enum.Enum):
    IDLE = "idle"
    SPAWNING = "spawning"
    RUNNING = "running"
    STOPPED = "stopped"


class IntentController:
    def __init__(
        self,
        service: ServiceDescriptor,
        function: FunctionDescriptor,
        plugin_config: PluginConfig,
        config: BridgeConfig,
        builder: Builder,
        spawner: Spawner,
        signal_manager: SignalManager,
    ):
        self.service = service
        self.function = function
        self.plugin_config = plugin_config
        self.config = config
        self.builder = builder
        self.spawner = spawner
        self.signal_manager = signal_manager

        self.build_state = BuildState.IDLE
        self.run_state = RunState.IDLE
        self.spawned: Optional[SpawnedProcess] = None

        # develop clears `image`; later runs and builds resolve from the declared one.
        self.source_image = copy.deepcopy(function.image)

    @property
    def workdir(self) -> str:
        return str(self.service.service_path)

    async def build(self) -> None:
        """
        Run the production build, then point the function at its image.

        Raises:
            BuildFailedError: the build collaborator failed (descriptor untouched)
            MissingImageConfigError: no image could be derived (descriptor untouched)
        """
        if self.build_state == BuildState.BUILDING:
            raise ConcurrencyError("build")

        previous = self.build_state
        self.build_state = BuildState.BUILDING
        try:
            env = self.service.environment_for(self.function)
            try:
                await self.builder.build(self.workdir, env)
            except BuildFailedError:
                raise
            except Exception as e:
                raise BuildFailedError(self.workdir, e) from e

            apply_intent(
                self.function,
                INTENT_SERVE,
                source_image=self.source_image,
                ecr_images=self.service.provider.ecr_images,
                plugin_config=self.plugin_config,
            )
        except BaseException:
            self.build_state = previous
            raise

        self.build_state = BuildState.BUILT
        logger.info("Build finished for function '%s'", self.function.name)

    async def run(self) -> SpawnedProcess:
        """
        Spawn the development server and point the function's handler at it.

        Raises:
            DockerModeUnsupportedError: custom.next.docker is set
            ConcurrencyError: another run() is still spawning
            DuplicateRouteError: routing requested but a websocket route exists
            SpawnError / MissingEndpointError: no usable endpoint (descriptor untouched)
        """
        if self.plugin_config.docker:
            raise DockerModeUnsupportedError()
        if self.run_state == RunState.SPAWNING:
            raise ConcurrencyError("run")

        previous = self.run_state
        self.run_state = RunState.SPAWNING
        try:
            spawned, events = await self._spawn()
        except BaseException:
            self._restore_signal_owner()
            self.run_state = previous
            raise

        try:
            apply_intent(self.function, INTENT_DEVELOP, spawned.endpoint)
        except MissingEndpointError:
            self._restore_signal_owner()
            await terminate(spawned.process)
            self.run_state = previous
            raise

        if events is not None:
            self.function.events = events

        old = self.spawned
        self.spawned = spawned
        self.signal_manager.bind(spawned.process)
        self.run_state = RunState.RUNNING
        if old is not None:
            await terminate(old.process)

        logger.info("Function '%s' is served from %s", self.function.name, spawned.endpoint)
        return spawned

    async def _spawn(self) -> tuple[SpawnedProcess, Optional[List[dict]]]:
        env = self.service.environment_for(self.function)

        events = None
        if self.plugin_config.routing:
            events, token = plan_routing(self.function)
            env[self.config.ROUTING_TOKEN_ENV] = token

        image = self.source_image
        command = resolve(
            INTENT_DEVELOP, image.command if image else None, self.plugin_config
        )
        logger.debug("Resolved develop command: %s", command)
        spawned = await self.spawner.spawn(command, env, on_spawn=self.signal_manager.bind)
        return spawned, events

    def _restore_signal_owner(self) -> None:
        if self.spawned is not None:
            self.signal_manager.bind(self.spawned.process)
        else:
            self.signal_manager.release()

    async def stop(self) -> None:
        """Terminate the running child, if any."""
        if self.spawned is None:
            return
        spawned, self.spawned = self.spawned, None
        self.signal_manager.release()
        await terminate(spawned.process)
        self.run_state = RunState.STOPPED
        logger.info("Stopped process %s", spawned.process.pid)
