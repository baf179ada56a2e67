"""
Error types shared by the Campus Relay server and client.
"""


class CampusRelayError(Exception):
    """Base class for all relay errors."""


class ProtocolParseError(CampusRelayError):
    """A handshake line, routing line or liveness ping is malformed."""


class AuthError(CampusRelayError):
    """Credentials did not match the credential table."""


class CapacityExceeded(CampusRelayError):
    """The session registry is at its configured maximum."""


class DuplicateSession(CampusRelayError):
    """A live session already holds the (campus, department) pair."""


class RoutingError(CampusRelayError):
    """No session exists for the target campus."""

    def __init__(self, campus: str, department: str):
        super().__init__(f"Target campus {campus} not connected")
        self.campus = campus
        self.department = department


class AuthenticationFailed(CampusRelayError):
    """Raised on the client when the server does not answer AUTH_OK."""

    def __init__(self, reply: str):
        super().__init__(f"Authentication failed: {reply}")
        self.reply = reply


class MessageTooLarge(ProtocolParseError):
    """A routed message payload is over the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Message of {size} bytes exceeds {limit} bytes")
        self.size = size
        self.limit = limit
