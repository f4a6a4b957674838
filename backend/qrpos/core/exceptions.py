"""
Domain errors raised by the services and translated to HTTP by the routers
"""


class POSError(Exception):
    """Base error; ``message`` is shown to staff as-is"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(POSError):
    """A data source could not be read while validating the close"""


class StateError(POSError):
    """The requested transition is not valid for the current day state"""


class DayClosedError(StateError):
    """Write attempted on an order that belongs to a closed business day"""


class InsufficientPrivilegeError(POSError):
    """The actor lacks the role required for the operation"""


class AtomicityFailure(POSError):
    """The close transaction failed part-way and was rolled back"""


class NotFoundError(POSError):
    """Referenced record does not exist"""
