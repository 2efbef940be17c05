class SchedulingError(Exception):
    """Base class for booking/scheduling failures surfaced to the user."""

    status_code = 400

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(SchedulingError):
    status_code = 400


class BookingConflictError(SchedulingError):
    status_code = 409

    def __init__(self, conflicts, message=None):
        from scheduling.conflicts import conflict_message

        super().__init__(message or conflict_message(conflicts))
        self.conflicts = list(conflicts)


class BookingWriteError(SchedulingError):
    status_code = 500

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code
