# app/errors.py

"""Error taxonomy for availability and booking operations.

Every error carries the HTTP status the API layer answers with, so routes
can let them propagate to the single handler registered in ``app.main``.
"""


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ServiceNotFoundError(BookingError):
    status_code = 404
    code = "service_not_found"


class ConsultantNotFoundError(BookingError):
    status_code = 404
    code = "consultant_not_found"


class BookingNotFoundError(BookingError):
    status_code = 404
    code = "booking_not_found"


class RecordNotFoundError(BookingError):
    status_code = 404
    code = "not_found"


class InvalidDateError(BookingError):
    status_code = 422
    code = "invalid_date"


class InvalidTimeError(BookingError):
    status_code = 422
    code = "invalid_time"


class InvalidRequestError(BookingError):
    status_code = 422
    code = "invalid_request"


class NoAvailableConsultantError(BookingError):
    """Terminal rejection: nobody holds capacity for the slot at commit time."""

    status_code = 409
    code = "no_available_consultant"


class ScheduleConflictError(BookingError):
    status_code = 409
    code = "schedule_conflict"


class MalformedRecordError(BookingError):
    """A stored row failed validation at the store boundary."""

    status_code = 500
    code = "malformed_record"


class StoreUnavailableError(BookingError):
    """The store kept failing after the bounded commit retry."""

    status_code = 503
    code = "store_unavailable"
