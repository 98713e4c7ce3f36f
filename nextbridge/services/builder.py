"""
Build collaborator: runs the framework's production build in the service directory.
All-or-nothing; any failure surfaces as BuildFailedError.
"""

import logging
import shlex
from typing import Mapping, Protocol

from nextbridge.core.config import BridgeConfig
from nextbridge.core.exceptions import BuildFailedError, NextBridgeError

from .process import run_command

logger = logging.getLogger("nextbridge.builder")


class Builder(Protocol):
    async def build(self, workdir: str, env: Mapping[str, str]) -> None: ...


class NextBuilder:
    def __init__(self, config: BridgeConfig):
        self.argv = shlex.split(config.BUILD_COMMAND)

    async def build(self, workdir: str, env: Mapping[str, str]) -> None:
        logger.info("Running `%s` in %s", " ".join(self.argv), workdir)
        try:
            await run_command(self.argv, workdir, env)
        except NextBridgeError as e:
            raise BuildFailedError(workdir, e) from e
        except OSError as e:
            raise BuildFailedError(workdir, e) from e
