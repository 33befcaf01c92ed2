# barbershop/exceptions.py

# Rendered by the BookingError handler in main.py.


class BookingError(Exception):
    """Base exception for all booking errors."""
    code = "booking_error"
    status_code = 400
    message = "Unable to complete the booking request."

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class ConfigurationError(BookingError):
    """Raised when a barber's working hours are missing or unreadable."""
    code = "availability_unconfigured"
    status_code = 503
    message = "Can't load availability for this barber right now."


class DataAccessError(BookingError):
    """Raised when a backend read or write fails for a transient reason."""
    code = "data_access"
    status_code = 503
    message = "Unable to reach the booking service. Please try again."


class IncompleteSelectionError(BookingError):
    """Raised when service, barber, date or slot is missing from a selection."""
    code = "incomplete_selection"
    status_code = 422
    message = "Booking details are missing. Please review again."


class AuthenticationError(BookingError):
    """Raised when there is no valid signed-in customer."""
    code = "authentication_required"
    status_code = 401
    message = "Please sign in again to confirm your booking."


class DuplicateActiveBookingError(BookingError):
    """Raised when the customer already holds a scheduled or in-progress booking."""
    code = "duplicate_active_booking"
    status_code = 409
    message = "You already have an active booking."


class SlotConflictError(BookingError):
    """Raised when the storage layer rejects an overlapping booking for the barber."""
    code = "slot_conflict"
    status_code = 409
    message = "This slot is no longer available. Please choose a different time."


class CancellationWindowClosedError(BookingError):
    """Raised when a customer cancels within the cutoff before the appointment."""
    code = "cancellation_window_closed"
    status_code = 409
    message = "Bookings can only be cancelled up to 2 hours before the appointment."


class InvalidPhaseError(BookingError):
    """Raised when a grace-session operation is not valid in its current phase."""
    code = "invalid_phase"
    status_code = 409
    message = "This booking can no longer be cancelled."


class BookingStatusError(BookingError):
    """Raised when a booking's status does not allow the requested change."""
    code = "invalid_status"
    status_code = 409
    message = "Booking already cancelled."


class BookingNotFoundError(BookingError):
    """Raised when a booking or booking attempt does not exist for the caller."""
    code = "not_found"
    status_code = 404
    message = "Booking not found."
