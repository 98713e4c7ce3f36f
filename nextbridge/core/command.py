"""
Command template resolution.

A command template is a token sequence whose first token has the shape
`<start-token>@<argument>`, e.g. `next@http://localhost:3000`. The start token
is rewritten per intent; the argument (the original startup endpoint) is kept
as-is. Templates are parsed into CommandTemplate right away and only turned
back into strings at the image/process boundary.
"""

import shlex
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Union
from urllib.parse import urlparse

from .config import DEFAULT_PORT, PluginConfig
from .exceptions import InvalidCommandError, UnknownIntentError

FRAMEWORK_TOKEN = "next"
MARKER = "@"

INTENT_BUILD = "build"
INTENT_SERVE = "serve"
INTENT_DEVELOP = "develop"
VALID_INTENTS = (INTENT_BUILD, INTENT_SERVE, INTENT_DEVELOP)

# Start token used for each intent that launches a process.
START_VARIANTS = {
    INTENT_DEVELOP: "next dev --turbo",
    INTENT_SERVE: "next start",
}

RawCommand = Union[str, Sequence[str], None]


@dataclass(frozen=True)
class CommandTemplate:
    start_token: str
    argument: Optional[str] = None
    extra: tuple = field(default_factory=tuple)

    def render(self) -> list[str]:
        """Token list form, as stored in `image.command`."""
        head = self.start_token
        if self.argument is not None:
            head = f"{head}{MARKER}{self.argument}"
        return [head, *self.extra]

    def __str__(self) -> str:
        return " ".join(self.render())

    def argv(self) -> list[str]:
        """Executable argv, without the marker argument."""
        return [*shlex.split(self.start_token), *self.extra]

    @property
    def hostname(self) -> Optional[str]:
        if not self.argument:
            return None
        return urlparse(self.argument).hostname

    @property
    def port(self) -> Optional[int]:
        if not self.argument:
            return None
        try:
            return urlparse(self.argument).port
        except ValueError:
            return None


def default_command(plugin_config: Optional[PluginConfig] = None) -> list[str]:
    port = plugin_config.effective_port if plugin_config else DEFAULT_PORT
    return [f"{FRAMEWORK_TOKEN}{MARKER}http://localhost:{port}"]


def _normalize(raw: RawCommand) -> list[str]:
    if isinstance(raw, str):
        # A string command is a single template token.
        tokens = [raw.strip()]
    else:
        tokens = [str(t).strip() for t in raw]
    return [t for t in tokens if t]


def parse_command(raw: RawCommand) -> CommandTemplate:
    tokens = _normalize(raw if raw is not None else [])
    if not tokens:
        raise InvalidCommandError("", FRAMEWORK_TOKEN)

    first, extra = tokens[0], tuple(tokens[1:])
    head, sep, argument = first.partition(MARKER)
    words = head.split()
    if not words or words[0] != FRAMEWORK_TOKEN:
        raise InvalidCommandError(" ".join(tokens), FRAMEWORK_TOKEN)

    return CommandTemplate(
        start_token=" ".join(words),
        argument=argument if sep else None,
        extra=extra,
    )


def _is_rewritable(template: CommandTemplate) -> bool:
    if template.argument is not None:
        return True
    return template.start_token == FRAMEWORK_TOKEN or template.start_token in START_VARIANTS.values()


def resolve(
    intent: str,
    raw_command: RawCommand = None,
    plugin_config: Optional[PluginConfig] = None,
) -> CommandTemplate:
    """
    Turn a declarative command into the concrete command for `intent`.

    Args:
        intent: "develop" or "serve"
        raw_command: string or token list; the configured default is used when absent
        plugin_config: source of the default port

    Raises:
        UnknownIntentError: intent has no process variant
        InvalidCommandError: first token is not the framework start token
    """
    if intent not in START_VARIANTS:
        raise UnknownIntentError(intent)

    if raw_command is None or (not isinstance(raw_command, str) and len(raw_command) == 0):
        raw_command = default_command(plugin_config)

    template = parse_command(raw_command)
    if not _is_rewritable(template):
        return template
    return replace(template, start_token=START_VARIANTS[intent])
