class ServiceError(Exception):
    """Base of every failure handed to ``Service.on_error``

    Attributes:
        path (str | None): operation path the failure relates to, if any
        message: the inbound message being handled when the failure happened, if any
    """

    def __init__(self, text, *, path=None, message=None):
        super().__init__(text)
        self.path = path
        self.message = message


class InvalidPacket(ServiceError):
    """Ill formed or unexpected message"""


class TransportConstructionFailure(ServiceError):
    """Duplex channel could not be created"""


class TransportRuntimeError(ServiceError):
    """Error surfaced on an opening or open channel"""


class HandlerDispatchFailure(ServiceError):
    """Registered implementation failed while handling a request"""


class MissingHandler(HandlerDispatchFailure):
    """No implementation registered for requested path"""


class SolicitTimeout(ServiceError):
    """No response arrived for a solicit within its timeout"""


class InvalidStateError(Exception):
    """The operation is not allowed in this state."""


class UnsupportedBase(ValueError):
    """Service base url is neither http[s] nor ws[s]"""


class CannotConnect(OSError):
    """Cannot connect to provided address"""
