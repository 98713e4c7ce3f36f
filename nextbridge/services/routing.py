"""
Routing side-channel

Websocket bindings the local process needs in order to receive traffic that the
cloud would otherwise deliver through its native channel.
"""

import copy
import uuid
from typing import Any, Dict, List, Tuple

from nextbridge.core.exceptions import DuplicateRouteError
from nextbridge.models.descriptor import FunctionDescriptor

WEBSOCKET_EVENT = "websocket"

# Order matters: catch-all first, then connection lifecycle.
ROUTES = ("$default", "$connect", "$disconnect")


def has_websocket_route(function: FunctionDescriptor) -> bool:
    return any(isinstance(event, dict) and WEBSOCKET_EVENT in event for event in function.events)


def routing_events() -> List[Dict[str, Any]]:
    return [{WEBSOCKET_EVENT: {"route": route}} for route in ROUTES]


def plan_routing(function: FunctionDescriptor) -> Tuple[List[Dict[str, Any]], str]:
    """
    Compute the events list with routing bindings appended, without mutating.

    Returns:
        (new events list, routing token)
    """
    if has_websocket_route(function):
        raise DuplicateRouteError(function.name)
    events = copy.deepcopy(function.events) + routing_events()
    return events, uuid.uuid4().hex


def install_routing(function: FunctionDescriptor) -> str:
    """Append the routing bindings to `function` and return the routing token."""
    events, token = plan_routing(function)
    function.events = events
    return token
