# What: Minimal lifecycle runner for plugin hooks.
# Why: Each CLI command fires before:<event>, <event>, after:<event> in order.
import logging
from typing import Awaitable, Callable, Mapping

logger = logging.getLogger("nextbridge.lifecycle")


def hook_names(event: str) -> list[str]:
    return [f"before:{event}", event, f"after:{event}"]


async def run_lifecycle(hooks: Mapping[str, Callable[[], Awaitable[None]]], event: str) -> list[str]:
    """Run the hooks registered for `event`. Returns the names that ran."""
    ran = []
    for name in hook_names(event):
        hook = hooks.get(name)
        if hook is None:
            continue
        logger.debug("Running hook %s", name)
        await hook()
        ran.append(name)
    return ran
