"""
Authenticator module.

Validates campus credentials presented in the connection handshake.
"""

from typing import Dict, Iterable, Optional

from common.errors import AuthError
from common.protocol_definitions import Credential


DEFAULT_CREDENTIALS = (
    Credential("Lahore", "NU-LHR-123"),
    Credential("Karachi", "NU-KHI-123"),
    Credential("Peshawar", "NU-PSH-123"),
    Credential("CFD", "NU-CFD-123"),
    Credential("Multan", "NU-MTN-123"),
)


class Authenticator:
    """Exact-match check against a static credential table."""

    def __init__(self, credentials: Optional[Iterable[Credential]] = None):
        table = DEFAULT_CREDENTIALS if credentials is None else credentials
        self._passwords: Dict[str, str] = {c.campus: c.password for c in table}

    def authenticate(self, campus: str, password: str) -> bool:
        """Return True when the campus exists and the password matches exactly."""
        expected = self._passwords.get(campus)
        return expected is not None and expected == password

    def verify(self, campus: str, password: str):
        """
        Check a credential pair.

        Raises:
            AuthError: unknown campus or wrong password
        """
        if not self.authenticate(campus, password):
            raise AuthError(f"Invalid credentials for campus {campus}")

    def known_campuses(self):
        """Get the campuses present in the credential table."""
        return list(self._passwords)
