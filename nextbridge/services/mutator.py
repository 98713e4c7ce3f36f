"""
Descriptor mutation per intent.

- serve/build: handler cleared, image.command set to the production start command
- develop:     handler set to the spawned endpoint, image cleared

Everything is validated before the descriptor is touched, so a failure leaves
it exactly as it was.
"""

import logging
from typing import Any, Dict, Optional

from nextbridge.core.command import INTENT_BUILD, INTENT_DEVELOP, INTENT_SERVE, resolve
from nextbridge.core.config import PluginConfig
from nextbridge.core.exceptions import (
    MissingEndpointError,
    MissingImageConfigError,
    UnknownIntentError,
)
from nextbridge.models.descriptor import FunctionDescriptor, FunctionImage

logger = logging.getLogger("nextbridge.mutator")


def image_name_from_registry(ecr_images: Optional[Dict[str, Any]]) -> str:
    """Pick the single image declared under provider.ecr.images."""
    if not ecr_images or not isinstance(ecr_images, dict):
        raise MissingImageConfigError("no images are configured under provider.ecr.images")
    if len(ecr_images) > 1:
        names = ", ".join(sorted(ecr_images))
        raise MissingImageConfigError(
            f"multiple images are configured under provider.ecr.images ({names}); "
            "set image.name on the function"
        )
    return next(iter(ecr_images))


def _serve_image(
    current: Optional[FunctionImage],
    ecr_images: Optional[Dict[str, Any]],
    plugin_config: Optional[PluginConfig],
) -> FunctionImage:
    name = current.name if current and current.name else image_name_from_registry(ecr_images)
    command = resolve(INTENT_SERVE, current.command if current else None, plugin_config)
    return FunctionImage(
        name=name,
        command=command.render(),
        extra=dict(current.extra) if current else {},
    )


def apply_intent(
    function: FunctionDescriptor,
    intent: str,
    resolved_endpoint: Optional[str] = None,
    *,
    source_image: Optional[FunctionImage] = None,
    ecr_images: Optional[Dict[str, Any]] = None,
    plugin_config: Optional[PluginConfig] = None,
) -> None:
    """
    Rewrite `function` in place for `intent`.

    serve/build start from `source_image` when given, otherwise from the
    function's current image.

    Raises:
        MissingImageConfigError: serve/build without a derivable image name
        MissingEndpointError: develop without an endpoint
        UnknownIntentError: any other intent
    """
    if intent in (INTENT_SERVE, INTENT_BUILD):
        current = source_image if source_image is not None else function.image
        image = _serve_image(current, ecr_images, plugin_config)
        function.handler = None
        function.image = image
        logger.debug(
            "Function '%s' now runs image %s (%s)", function.name, image.name, image.command
        )
        return

    if intent == INTENT_DEVELOP:
        if not resolved_endpoint:
            raise MissingEndpointError(function.name)
        function.handler = str(resolved_endpoint)
        function.image = None
        logger.debug("Function '%s' now points at %s", function.name, function.handler)
        return

    raise UnknownIntentError(intent)
