"""
Custom exception classes.

Represent errors raised while rewriting a function descriptor or driving
the local Next.js process.
"""


class NextBridgeError(Exception):
    """Base exception class for nextbridge."""

    pass


class InvalidCommandError(NextBridgeError):
    """Raised when a command template does not start with the framework token."""

    def __init__(self, command: str, expected: str):
        self.command = command
        self.expected = expected
        super().__init__(f"Invalid command '{command}': expected it to start with '{expected}'")


class UnknownIntentError(NextBridgeError):
    """Raised when an intent has no command variant."""

    def __init__(self, intent: str):
        self.intent = intent
        super().__init__(f"Unknown intent: {intent}")


class MissingImageConfigError(NextBridgeError):
    """Raised when no single image can be derived from the registry configuration."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Unable to determine the function image: {detail}")


class MissingEndpointError(NextBridgeError):
    """Raised when develop mode is applied without a resolved endpoint."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"No resolved endpoint for function '{function_name}'")


class DockerModeUnsupportedError(NextBridgeError):
    """Raised when containerized local execution is requested."""

    def __init__(self):
        super().__init__("Docker mode is not supported for local execution yet")


class BuildFailedError(NextBridgeError):
    """Raised when the build collaborator reports a failure."""

    def __init__(self, workdir: str, cause: Exception):
        self.workdir = workdir
        self.cause = cause
        super().__init__(f"Build failed in {workdir}: {cause}")


class DuplicateRouteError(NextBridgeError):
    """Raised when a function already carries a websocket binding."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Function '{function_name}' already has a websocket route")


class ConcurrencyError(NextBridgeError):
    """Raised when run() is entered while another run() is still in flight."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"'{operation}' is already in progress")


class SpawnError(NextBridgeError):
    """Raised when the local process cannot be spawned or never becomes ready."""

    def __init__(self, command: str, detail: str):
        self.command = command
        self.detail = detail
        super().__init__(f"Failed to start '{command}': {detail}")


class CommandNotFoundError(NextBridgeError):
    """Raised when an executable is not on PATH."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Unable to locate the '{command}' command on this system")


class CommandFailedError(NextBridgeError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, command: str, returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(f"Command {command} exited with code {returncode}")


class PluginConfigError(NextBridgeError):
    """Raised when custom.next has an invalid shape."""

    pass


class DescriptorError(NextBridgeError):
    """Raised when the service descriptor file cannot be read."""

    pass


class RelayError(NextBridgeError):
    """Raised when an invocation cannot be fetched from or forwarded by the relay."""

    pass
