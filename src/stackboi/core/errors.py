"""Domain errors raised by stackboi operations.

Commands catch these at their boundary and report them through Ensure-style
red `Error:` output.
"""


class StackboiConfigError(Exception):
    """Error raised when `.stackboi.json` cannot be used."""


class ConfigMissingError(StackboiConfigError):
    """Error raised when `.stackboi.json` does not exist."""


class ConfigInvalidError(StackboiConfigError):
    """Error raised when `.stackboi.json` is malformed or breaks a stack invariant."""


class StackOperationError(ValueError):
    """Error raised when a requested stack change is not allowed."""


class SyncInProgressError(RuntimeError):
    """Error raised when a sync is requested while another one owns the working tree."""
