from .descriptor import (
    FunctionDescriptor,
    FunctionImage,
    ProviderConfig,
    ServiceDescriptor,
    default_function,
    load_service,
    dump_service,
)

__all__ = [
    "FunctionDescriptor",
    "FunctionImage",
    "ProviderConfig",
    "ServiceDescriptor",
    "default_function",
    "load_service",
    "dump_service",
]
