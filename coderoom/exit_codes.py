"""
Standard exit codes and error types for coderoom.

Following Unix/POSIX conventions for command-line tools. Every error the
catalog raises on purpose is a CommandError subclass so the CLI can turn
it into a JSON error object and a stable exit code.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_FOUND = 64           # Repository, root or tag association not found
STORAGE_ERROR = 65       # Catalog database cannot be opened or written
CONFIG_ERROR = 66        # Configuration file error
PERMISSION_ERROR = 67    # Filesystem path cannot be read
BUSY = 68                # Another scan or rebuild is running
DATA_ERROR = 70          # Git data unreadable or corrupt
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': NOT_FOUND,
    'PermissionError': PERMISSION_ERROR,
    'ValueError': USAGE_ERROR,
    'OperationalError': STORAGE_ERROR,
    'DatabaseError': STORAGE_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    kind = 'error'

    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class NotFoundError(CommandError):
    """Raised when a repository, root or tag association does not exist."""
    kind = 'not-found'

    def __init__(self, message: str = "Not found"):
        super().__init__(message, NOT_FOUND)


class FilesystemAccessError(CommandError):
    """Raised when a directory or file cannot be read."""
    kind = 'filesystem-access'

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, PERMISSION_ERROR)
        self.path = path


class GitDataError(CommandError):
    """Raised when a repository's git data cannot be read."""
    kind = 'git-data-corrupt'

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, DATA_ERROR)
        self.path = path


class StorageUnavailableError(CommandError):
    """Raised when the catalog database cannot be opened or written."""
    kind = 'storage-unavailable'

    def __init__(self, message: str):
        super().__init__(message, STORAGE_ERROR)


class ConstraintViolationError(CommandError):
    """Raised when a write breaks a uniqueness or foreign key constraint."""
    kind = 'constraint-violation'

    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class BusyError(CommandError):
    """Raised when a mutating operation is requested while another runs."""
    kind = 'busy'

    def __init__(self, message: str = "Another scan or index rebuild is in progress"):
        super().__init__(message, BUSY)


class ValidationError(CommandError):
    """Raised for malformed input: bad pagination, scopes, limits or tag names."""
    kind = 'validation'

    def __init__(self, message: str):
        super().__init__(message, USAGE_ERROR)


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    kind = 'config'

    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)
