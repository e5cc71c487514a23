"""
Standard exit codes and error types for govpub.

Following Unix/POSIX conventions for command-line tools. Publishing
errors carry their exit code so the CLI can map them without guessing.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_FOUND = 64           # Requested document, branch or path does not exist
API_ERROR = 65           # GitHub API call failed
CONFIG_ERROR = 66        # Configuration file error
CONFLICT = 67            # Ref collision or stale content hash
NETWORK_ERROR = 68       # Network connection failed
DATA_ERROR = 70          # Data format or validation error
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class PublishError(CommandError):
    """Base class for failures while publishing or reading documents."""


class ValidationError(PublishError):
    """A publish request is missing required fields or is malformed.

    Always raised before any call to the host is made.
    """
    def __init__(self, message: str):
        super().__init__(message, DATA_ERROR)


class NotFoundError(PublishError):
    """The host reported that a ref, path or repository does not exist."""
    def __init__(self, message: str):
        super().__init__(message, NOT_FOUND)


class ConflictError(PublishError):
    """A ref already exists elsewhere, or an expected content hash is stale."""
    def __init__(self, message: str):
        super().__init__(message, CONFLICT)


class HostError(PublishError):
    """Any other failure reported by GitHub (auth, rate limit, network)."""
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message, API_ERROR)
        self.status = status


class NetworkError(HostError):
    """GitHub could not be reached: connection refused, DNS failure or timeout."""
    def __init__(self, message: str):
        super().__init__(message)
        self.exit_code = NETWORK_ERROR
