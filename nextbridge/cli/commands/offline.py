"""
`offline start`: spawn the dev server, point the function at it, and relay
Runtime API invocations to it when AWS_LAMBDA_RUNTIME_API is configured.
"""

import asyncio
import logging

from nextbridge.cli.lifecycle import run_lifecycle
from nextbridge.core import console
from nextbridge.core.http_client import HttpClientFactory
from nextbridge.services.relay import HttpEventForwarder, InvocationRelay

logger = logging.getLogger("nextbridge.cli.offline")


async def _start(plugin) -> int:
    await run_lifecycle(plugin.hooks, "offline:start")

    controller = plugin.controller
    spawned = controller.spawned
    if spawned is None:
        return 1
    console.success(f"{plugin.function.name} is served from {console.highlight(spawned.endpoint)}")

    runtime_api = plugin.config.AWS_LAMBDA_RUNTIME_API
    if not runtime_api:
        console.warning("AWS_LAMBDA_RUNTIME_API is not set, invocations will not be relayed")
        try:
            return await spawned.process.wait()
        finally:
            await controller.stop()

    factory = HttpClientFactory(plugin.config)
    async with factory.create_async_client() as client:
        relay = InvocationRelay(
            client=client,
            runtime_api=runtime_api,
            endpoint_source=lambda: plugin.function.handler,
            forwarder=HttpEventForwarder(client, timeout=plugin.config.RELAY_FORWARD_TIMEOUT),
            config=plugin.config,
        )
        await relay.start()
        console.info(f"Relaying invocations from {runtime_api}")
        try:
            return await spawned.process.wait()
        finally:
            await relay.stop()
            await controller.stop()


def run(args, plugin) -> int:
    console.step("Starting offline...")
    return asyncio.run(_start(plugin))
