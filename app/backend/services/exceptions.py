# --- Service layer exception classes ---

class ServiceError(Exception):
    """General exception class for the service layer."""
    pass


class DataAccessError(ServiceError):
    """The database could not be reached or rejected the query."""
    pass


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class AuthenticationError(ServiceError):
    pass


class IncompleteAttendanceError(ServiceError):
    """A commit was attempted while some roster children are still unmarked."""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"Please mark attendance for all kids. {remaining} remaining.")
