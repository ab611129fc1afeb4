class BookingError(Exception):
    """Booking request that cannot be accepted. The message is user-safe."""


class OwnerSuspendedError(BookingError):
    def __init__(self, message="This vehicle's owner is not accepting bookings right now."):
        super().__init__(message)


class InvalidTransition(BookingError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move a {current} booking to {target}.")
