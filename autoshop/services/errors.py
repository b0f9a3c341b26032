class CoreError(Exception):
    """Base class for errors raised by the session/attendance core."""


class StorageError(CoreError):
    """The database could not complete an operation. The transaction was rolled back."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage failure during {operation}: {cause}")


class ProtectedStateError(CoreError):
    """Attendance-linked session states can only be written by the orchestrator."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"State {state!r} is managed by the attendance queue")


class InvalidPhoneError(CoreError, ValueError):
    def __init__(self, raw: object):
        self.raw = raw
        super().__init__(f"Cannot derive a phone number from {raw!r}")
