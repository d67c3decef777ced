class HomeHubException(Exception):
    """Base class for every failure talking to the Home Hub."""


class TransportException(HomeHubException):
    """HTTP status >= 400, connection failure or timeout."""


class ProtocolException(HomeHubException):
    """The hub answered, but not with a successful reply."""

    def __init__(self, description: str):
        super().__init__(description)
        self.description = description


class AuthenticationException(ProtocolException):
    pass


__all__ = [
    "HomeHubException",
    "TransportException",
    "ProtocolException",
    "AuthenticationException",
]
