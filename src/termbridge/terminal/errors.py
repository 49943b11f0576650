class TerminalBridgeError(Exception):
    """Base class for all errors raised by the terminal bridge."""

    def __init__(self, message: str):
        super().__init__(message)


class WorkspaceUninitializedError(TerminalBridgeError):
    """Raised when a tmux operation is attempted before the workspace is ready.

    The facade always resolves a session (and thereby initializes the workspace) first,
    so this indicates a bug rather than a user error.
    """


class WorkspaceCreationError(TerminalBridgeError):
    """Raised when the private socket directory cannot be created."""


class TmuxCommandError(TerminalBridgeError):
    """A tmux invocation exited with a non-zero status."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class SessionCreationError(TmuxCommandError):
    pass


class KeyDeliveryError(TmuxCommandError):
    pass


class CaptureError(TmuxCommandError):
    pass


class SessionTerminationError(TmuxCommandError):
    pass


class ValidationUnavailableError(TerminalBridgeError):
    """Raised when the tmux binary is missing or cannot be run."""


class SessionNameRequiredError(TerminalBridgeError, ValueError):

    def __init__(self, message: str = "sessionName is required"):
        super().__init__(message)
