"""WhatsApp service exception hierarchy."""


class WhatsAppError(Exception):
    """Base exception for all WhatsApp relay errors."""

    status_code = 500


class NotConnectedError(WhatsAppError):
    """The WhatsApp session is not ready."""

    status_code = 400

    def __init__(self, message: str = "WhatsApp is not connected"):
        super().__init__(message)


class InvalidRequestError(WhatsAppError):
    """Required request fields are missing or malformed."""

    status_code = 400


class SessionCommandError(WhatsAppError):
    """A command sent to the session bridge failed."""

    def __init__(self, method: str, message: str):
        self.method = method
        super().__init__(message)


class SessionNotStartedError(SessionCommandError):
    """No live connection to the session bridge."""

    def __init__(self, method: str):
        super().__init__(method, "Not connected to WhatsApp session service")
