import asyncio

from nextbridge import PLUGIN_NAME
from nextbridge.cli.lifecycle import run_lifecycle
from nextbridge.core import console


def run(args, plugin) -> None:
    console.step(f"Building {plugin.function.name}...")
    asyncio.run(run_lifecycle(plugin.hooks, f"{PLUGIN_NAME}:build"))

    image = plugin.function.image
    if image is not None:
        console.detail("image", str(image.name))
        console.detail("command", " ".join(image.command or []))
    console.success("Build complete.")
