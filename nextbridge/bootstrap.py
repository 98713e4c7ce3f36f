"""
Container entrypoint.

Starts the Next.js server named by `_HANDLER` on a free port and relays Lambda
Runtime API invocations to it until the server exits.

    python -m nextbridge.bootstrap
"""

import asyncio
import logging
import os
import sys
from typing import Mapping, Optional

from nextbridge.core.command import (
    FRAMEWORK_TOKEN,
    INTENT_DEVELOP,
    INTENT_SERVE,
    parse_command,
    resolve,
)
from nextbridge.core.config import BridgeConfig
from nextbridge.core.exceptions import InvalidCommandError, NextBridgeError
from nextbridge.core.http_client import HttpClientFactory
from nextbridge.core.logging_config import setup_logging
from nextbridge.services.process import ProcessSpawner, Spawner, terminate
from nextbridge.services.relay import HttpEventForwarder, InvocationRelay
from nextbridge.services.signals import SignalManager

logger = logging.getLogger("nextbridge.bootstrap")


def resolve_handler(env: Mapping[str, str]):
    handler = env.get("_HANDLER")
    if not handler:
        raise RuntimeError("No handler specified")
    try:
        parse_command(handler)
    except InvalidCommandError as e:
        raise NotImplementedError(f"Handler '{handler}' is not a {FRAMEWORK_TOKEN} handler") from e

    intent = INTENT_DEVELOP if env.get("IS_OFFLINE") == "true" else INTENT_SERVE
    return resolve(intent, handler)


async def serve(
    env: Optional[Mapping[str, str]] = None,
    config: Optional[BridgeConfig] = None,
    signal_manager: Optional[SignalManager] = None,
    spawner: Optional[Spawner] = None,
) -> int:
    env = dict(os.environ if env is None else env)
    config = config or BridgeConfig()
    command = resolve_handler(env)

    runtime_api = env.get("AWS_LAMBDA_RUNTIME_API") or config.AWS_LAMBDA_RUNTIME_API
    if not runtime_api:
        raise RuntimeError("AWS_LAMBDA_RUNTIME_API is not set")

    spawner = spawner or ProcessSpawner(config, workdir=os.getcwd())
    signal_manager = signal_manager or SignalManager()
    try:
        spawned = await spawner.spawn(command, env, on_spawn=signal_manager.bind)
    except BaseException:
        signal_manager.release()
        raise

    factory = HttpClientFactory(config)
    async with factory.create_async_client() as client:
        relay = InvocationRelay(
            client=client,
            runtime_api=runtime_api,
            endpoint_source=lambda: spawned.endpoint,
            forwarder=HttpEventForwarder(client, timeout=config.RELAY_FORWARD_TIMEOUT),
            config=config,
        )
        await relay.start()
        try:
            returncode = await spawned.process.wait()
        finally:
            await relay.stop()
            signal_manager.release()
            await terminate(spawned.process)

    logger.info("Server exited with code %s", returncode)
    return returncode


def main() -> None:
    config = BridgeConfig()
    setup_logging(config.LOG_CONFIG_PATH, config.LOG_LEVEL, config.LOG_FORMAT)
    try:
        code = asyncio.run(serve(config=config))
    except (NextBridgeError, RuntimeError, NotImplementedError) as e:
        logger.error(str(e))
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
