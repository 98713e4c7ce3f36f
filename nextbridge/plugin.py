"""
NextPlugin

Registers the deployment lifecycle hooks that drive the IntentController:

- `before:package:createDeploymentArtifacts` -> build(); errors abort packaging
- `before:offline:start`                     -> run(); errors exit with status 1
- `next:build` (+ before/after)              -> build()
"""

import logging
import sys
from typing import Awaitable, Callable, Dict, Optional

from nextbridge import PLUGIN_NAME
from nextbridge.core.config import BridgeConfig, PluginConfig
from nextbridge.models.descriptor import ServiceDescriptor, default_function
from nextbridge.services.builder import Builder, NextBuilder
from nextbridge.services.controller import IntentController
from nextbridge.services.process import ProcessSpawner, Spawner
from nextbridge.services.signals import SignalManager

logger = logging.getLogger("nextbridge.plugin")

Hook = Callable[[], Awaitable[None]]

BUILD_HOOK = f"{PLUGIN_NAME}:build"
OFFLINE_START_HOOK = "before:offline:start"
PACKAGE_HOOK = "before:package:createDeploymentArtifacts"

COMMANDS = {
    PLUGIN_NAME: {
        "usage": f"Runs {PLUGIN_NAME} commands.",
        "commands": {
            "build": {
                "usage": f"Runs `{PLUGIN_NAME} build`.",
                "lifecycleEvents": [],
            },
        },
        "lifecycleEvents": ["build"],
    },
}


class NextPlugin:
    def __init__(
        self,
        service: ServiceDescriptor,
        options: Optional[dict] = None,
        config: Optional[BridgeConfig] = None,
        builder: Optional[Builder] = None,
        spawner: Optional[Spawner] = None,
        signal_manager: Optional[SignalManager] = None,
    ):
        self.service = service
        self.options = options or {}
        self.config = config or BridgeConfig()
        self.plugin_config = PluginConfig.from_custom(service.custom, PLUGIN_NAME)

        function = service.get_function(self.plugin_config.function)
        if function is None:
            function = default_function(self.plugin_config)
            service.functions[function.name] = function
            logger.debug("Function '%s' not declared, using the default definition", function.name)
        self.function = function

        self.controller = IntentController(
            service=service,
            function=function,
            plugin_config=self.plugin_config,
            config=self.config,
            builder=builder or NextBuilder(self.config),
            spawner=spawner or ProcessSpawner(self.config, workdir=str(service.service_path)),
            signal_manager=signal_manager or SignalManager(),
        )

        self.hooks: Dict[str, Hook] = self.setup_hooks()
        self.commands = COMMANDS

    def setup_hooks(self) -> Dict[str, Hook]:
        async def initialize() -> None:
            pass

        async def build() -> None:
            logger.info(BUILD_HOOK)
            await self.controller.build()

        async def before_build() -> None:
            logger.debug(f"before:{BUILD_HOOK}")

        async def after_build() -> None:
            logger.debug(f"after:{BUILD_HOOK}")

        async def before_offline_start() -> None:
            logger.info(OFFLINE_START_HOOK)
            try:
                await self.controller.run()
            except Exception as e:
                logger.error(str(e))
                sys.exit(1)

        async def before_package() -> None:
            logger.info(PACKAGE_HOOK)
            try:
                await self.controller.build()
            except Exception as e:
                logger.error(str(e))
                raise

        hooks: Dict[str, Hook] = {
            "initialize": initialize,
            BUILD_HOOK: build,
            f"before:{BUILD_HOOK}": before_build,
            f"after:{BUILD_HOOK}": after_build,
            OFFLINE_START_HOOK: before_offline_start,
            PACKAGE_HOOK: before_package,
        }

        for hook in self.plugin_config.hooks:
            if hook == BUILD_HOOK:
                logger.warning(
                    f'Hook "{hook}" is reserved for the "{PLUGIN_NAME}" plugin. '
                    f"Use `before:{hook}` or `after:{hook}` instead."
                )
                continue
            hooks[hook] = _not_implemented(hook)

        return hooks


def _not_implemented(hook: str) -> Hook:
    async def placeholder() -> None:
        raise NotImplementedError(f'Hook "{hook}" is not implemented yet.')

    return placeholder
