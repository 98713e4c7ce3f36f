"""
Logging Configuration

Provides:
- PluginLogFormatter: prefixes records with the plugin name, e.g. "[next] ..."
- JsonLogFormatter: one JSON object per record, for the invocation relay
- setup_logging: YAML dictConfig loader with ${VAR} substitution
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone

import yaml

from nextbridge import PLUGIN_NAME

LOGGER_NAME = "nextbridge"


class PluginLogFormatter(logging.Formatter):
    """Formats records as `[<plugin>] <message>`."""

    def __init__(self, plugin_name: str = PLUGIN_NAME):
        super().__init__()
        self.plugin_name = plugin_name

    def format(self, record: logging.LogRecord) -> str:
        message = f"[{self.plugin_name}] {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class JsonLogFormatter(logging.Formatter):
    """
    JSON formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name
      - message: Log message
      - request_id: Runtime API request id, when passed via `extra`
    """

    standard_attrs = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in self.standard_attrs and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config_path: str, level: str | None = None, log_format: str | None = None):
    """
    Load the YAML config, substitute environment variables, and initialize logging.

    `log_format` names the console formatter: "plugin" (default) or "json".
    """
    mapping = os.environ.copy()
    mapping["LOG_LEVEL"] = (level or mapping.get("LOG_LEVEL") or "INFO").upper()
    mapping["LOG_FORMAT"] = (log_format or mapping.get("LOG_FORMAT") or "plugin").lower()

    if not os.path.exists(config_path):
        logging.basicConfig(level=mapping["LOG_LEVEL"])
        return

    with open(config_path, "r", encoding="utf-8") as f:
        template = string.Template(f.read())

    content = template.safe_substitute(mapping)
    config = yaml.safe_load(content)
    logging.config.dictConfig(config)


def set_verbose(verbose: bool) -> None:
    """Lower the package logger to DEBUG when --verbose is passed."""
    if verbose:
        logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG)
