"""
Service descriptor model

Parse a serverless.yml into dataclasses and render it back. Keys this package
does not understand are carried through untouched in `extra`.
"""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from nextbridge.core.command import default_command
from nextbridge.core.config import DEFAULT_RUNTIME, PluginConfig
from nextbridge.core.exceptions import DescriptorError

DEFAULT_STAGE = "dev"


@dataclass
class FunctionImage:
    name: Optional[str] = None
    command: Optional[List[str]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FunctionImage"]:
        if raw is None:
            return None
        if isinstance(raw, str):
            return cls(name=raw)
        if not isinstance(raw, dict):
            raise DescriptorError(f"Invalid image definition: {raw!r}")
        data = dict(raw)
        command = data.pop("command", None)
        if isinstance(command, str):
            command = [command]
        return cls(name=data.pop("name", None), command=command, extra=data)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.name is not None:
            data["name"] = self.name
        if self.command is not None:
            data["command"] = list(self.command)
        data.update(copy.deepcopy(self.extra))
        return data


@dataclass
class FunctionDescriptor:
    """
    A single function. `handler` is either None (cloud-native invocation) or the
    URL of a locally running process.
    """

    name: str
    handler: Optional[str] = None
    image: Optional[FunctionImage] = None
    events: List[Dict[str, Any]] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    runtime: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, name: str, raw: Optional[dict]) -> "FunctionDescriptor":
        data = dict(raw or {})
        events = data.pop("events", None) or []
        if not isinstance(events, list):
            raise DescriptorError(f"Function '{name}': events must be a list")
        return cls(
            name=name,
            handler=data.pop("handler", None),
            image=FunctionImage.from_raw(data.pop("image", None)),
            events=events,
            environment={k: str(v) for k, v in (data.pop("environment", None) or {}).items()},
            runtime=data.pop("runtime", None),
            extra=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.handler is not None:
            data["handler"] = self.handler
        if self.image is not None:
            data["image"] = self.image.to_dict()
        if self.runtime is not None:
            data["runtime"] = self.runtime
        if self.environment:
            data["environment"] = dict(self.environment)
        if self.events:
            data["events"] = copy.deepcopy(self.events)
        data.update(copy.deepcopy(self.extra))
        return data


@dataclass
class ProviderConfig:
    # None when the file leaves them out; see effective_stage.
    name: Optional[str] = None
    stage: Optional[str] = None
    environment: Dict[str, str] = field(default_factory=dict)
    ecr: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def effective_stage(self) -> str:
        return self.stage or DEFAULT_STAGE

    @property
    def ecr_images(self) -> Dict[str, Any]:
        return self.ecr.get("images") or {}

    @classmethod
    def from_raw(cls, raw: Optional[dict]) -> "ProviderConfig":
        data = dict(raw or {})
        return cls(
            name=data.pop("name", None),
            stage=data.pop("stage", None),
            environment={k: str(v) for k, v in (data.pop("environment", None) or {}).items()},
            ecr=data.pop("ecr", None) or {},
            extra=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.name is not None:
            data["name"] = self.name
        if self.stage is not None:
            data["stage"] = self.stage
        if self.environment:
            data["environment"] = dict(self.environment)
        if self.ecr:
            data["ecr"] = copy.deepcopy(self.ecr)
        data.update(copy.deepcopy(self.extra))
        return data


@dataclass
class ServiceDescriptor:
    service: str
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    functions: Dict[str, FunctionDescriptor] = field(default_factory=dict)
    custom: Dict[str, Any] = field(default_factory=dict)
    service_path: Path = field(default_factory=Path.cwd)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, service_path: Optional[Path] = None) -> "ServiceDescriptor":
        if not isinstance(data, dict) or "service" not in data:
            raise DescriptorError("Service descriptor must be a mapping with a 'service' key")
        data = dict(data)
        functions_raw = data.pop("functions", None) or {}
        if not isinstance(functions_raw, dict):
            raise DescriptorError("'functions' must be a mapping")
        return cls(
            service=str(data.pop("service")),
            provider=ProviderConfig.from_raw(data.pop("provider", None)),
            functions={
                name: FunctionDescriptor.from_raw(name, props)
                for name, props in functions_raw.items()
            },
            custom=data.pop("custom", None) or {},
            service_path=service_path or Path.cwd(),
            extra=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"service": self.service}
        provider = self.provider.to_dict()
        if provider:
            data["provider"] = provider
        if self.custom:
            data["custom"] = copy.deepcopy(self.custom)
        data["functions"] = {name: fn.to_dict() for name, fn in self.functions.items()}
        data.update(copy.deepcopy(self.extra))
        return data

    def get_function(self, name: str) -> Optional[FunctionDescriptor]:
        return self.functions.get(name)

    def environment_for(self, function: FunctionDescriptor) -> Dict[str, str]:
        """Process environment merged with provider- then function-level overrides."""
        env = dict(os.environ)
        env.update(self.provider.environment)
        env.update(function.environment)
        return env


def default_function(plugin_config: PluginConfig) -> FunctionDescriptor:
    """The function used when the service does not declare the managed one."""
    return FunctionDescriptor(
        name=plugin_config.function,
        runtime=DEFAULT_RUNTIME,
        image=FunctionImage(command=default_command(plugin_config)),
    )


def load_service(path: Path) -> ServiceDescriptor:
    path = Path(path)
    if not path.exists():
        raise DescriptorError(f"Service file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DescriptorError(f"Failed to parse {path}: {e}") from e
    return ServiceDescriptor.from_dict(data, service_path=path.resolve().parent)


def dump_service(service: ServiceDescriptor, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(service.to_dict(), sort_keys=False))
    return path
