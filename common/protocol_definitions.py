"""
Protocol definitions for the Campus Relay messaging system.

This module defines the line formats exchanged over the TCP session stream,
the liveness datagram format, and helpers to parse and build them.
Parsers are length-checked and raise ProtocolParseError instead of
truncating oversized fields.
"""

from typing import Iterable, List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime

from common.constants import (
    AUTH_DELIMITER, ROUTE_DELIMITER, PING_DELIMITER, DEFAULT_DEPARTMENT,
    MAX_NAME_LENGTH, MAX_MESSAGE_SIZE
)
from common.errors import ProtocolParseError, MessageTooLarge


@dataclass(frozen=True)
class Credential:
    """Static credential table entry."""
    campus: str
    password: str


@dataclass(frozen=True)
class AuthRequest:
    """Parsed handshake line."""
    campus: str
    department: str
    password: str


@dataclass(frozen=True)
class RoutingEnvelope:
    """Parsed addressed request from a session stream."""
    target_campus: str
    target_department: str
    payload: str


@dataclass(frozen=True)
class LivenessPing:
    """Parsed liveness datagram."""
    campus: str
    department: str


def _check_field(name: str, value: str, limit: int = MAX_NAME_LENGTH):
    if len(value) > limit:
        raise ProtocolParseError(f"{name} longer than {limit} characters")


def strip_line(line: str) -> str:
    """Remove the line terminator (\\n or \\r\\n) from a received line."""
    return line.rstrip('\r\n')


def parse_auth_line(line: str, max_name: int = MAX_NAME_LENGTH) -> AuthRequest:
    """
    Parse a CAMPUS:DEPARTMENT:PASSWORD handshake line.

    The first two colons are delimiters; everything after the second colon
    is the password.
    """
    parts = strip_line(line).split(AUTH_DELIMITER, 2)
    if len(parts) < 3:
        raise ProtocolParseError("Handshake needs Campus:Dept:Password")

    campus, department, password = parts
    if not campus or not department:
        raise ProtocolParseError("Campus and department must not be empty")

    _check_field("campus", campus, max_name)
    _check_field("department", department, max_name)
    _check_field("password", password, max_name)
    return AuthRequest(campus, department, password)


def parse_route_line(line: str, max_name: int = MAX_NAME_LENGTH,
                     max_message: int = MAX_MESSAGE_SIZE) -> RoutingEnvelope:
    """
    Parse a <targetCampus>,<targetDept>,<message> request.

    The message itself may contain commas. An empty department is allowed
    and resolves through the campus fallback.
    """
    parts = strip_line(line).split(ROUTE_DELIMITER, 2)
    if len(parts) < 3:
        raise ProtocolParseError("Use format TargetCampus,Dept,Message")

    target_campus, target_department, payload = parts
    if not target_campus:
        raise ProtocolParseError("Target campus must not be empty")

    _check_field("target campus", target_campus, max_name)
    _check_field("target department", target_department, max_name)

    size = len(payload.encode('utf-8'))
    if size > max_message:
        raise MessageTooLarge(size, max_message)

    return RoutingEnvelope(target_campus, target_department, payload)


def parse_ping(data: bytes, max_name: int = MAX_NAME_LENGTH) -> LivenessPing:
    """Parse a campus|department liveness datagram, or the legacy bare campus form."""
    try:
        text = data.decode('utf-8').strip()
    except UnicodeDecodeError as e:
        raise ProtocolParseError(f"Ping is not valid UTF-8: {e}")

    if not text:
        raise ProtocolParseError("Empty ping")

    if PING_DELIMITER in text:
        campus, department = text.split(PING_DELIMITER, 1)
        department = department or DEFAULT_DEPARTMENT
    else:
        campus, department = text, DEFAULT_DEPARTMENT

    if not campus:
        raise ProtocolParseError("Ping without campus")

    _check_field("campus", campus, max_name)
    _check_field("department", department, max_name)
    return LivenessPing(campus, department)


def encode_line(text: str) -> bytes:
    """Encode text as one newline-terminated stream record."""
    if not text.endswith('\n'):
        text += '\n'
    return text.encode('utf-8')


def format_envelope(src_campus: str, src_department: str, dst_campus: str,
                    dst_department: str, message: str) -> str:
    """Create the annotated line delivered to a destination session."""
    return f"[{src_campus} {src_department} -> {dst_campus} {dst_department}] {message}"


def format_clock(timestamp: Optional[float], fmt: str = '%H:%M:%S') -> str:
    """Render a last-seen timestamp, or 'never' for sessions that have not pinged."""
    if timestamp is None:
        return 'never'
    return datetime.fromtimestamp(timestamp).strftime(fmt)


def create_listing_block(entries: Iterable[Tuple[str, str, Optional[float]]]) -> str:
    """Create the LIST_REQUEST reply from (campus, department, last_seen) rows."""
    lines: List[str] = ["[SERVER] Connected Campuses:"]
    rows = list(entries)
    if not rows:
        lines.append("  No campuses connected.")
    for ordinal, (campus, department, last_seen) in enumerate(rows, start=1):
        lines.append(f"  {ordinal}. {campus} - {department} (Last seen: {format_clock(last_seen)})")
    lines.append("-" * 28)
    return '\n'.join(lines) + '\n'


def create_format_error_reply() -> str:
    """Create the reply for a malformed routing line."""
    return "[SERVER] Error: Use format TargetCampus,Dept,Message"


def create_oversize_error_reply(limit: int) -> str:
    """Create the reply for a message over the size limit."""
    return f"[SERVER] Error: Message exceeds {limit} bytes"


def create_routing_error_reply(campus: str) -> str:
    """Create the reply for an unreachable target campus."""
    return f"[SERVER] Target campus {campus} not connected."


def create_fallback_notice(campus: str, requested_department: str, actual_department: str) -> str:
    """Create the optional notice sent when a message was delivered through the campus fallback."""
    return (f"[SERVER] Notice: {campus} {requested_department} not connected; "
            f"delivered to {campus} {actual_department}.")


def create_auth_line(campus: str, department: str, password: str) -> str:
    """Create a handshake line."""
    return f"{campus}{AUTH_DELIMITER}{department}{AUTH_DELIMITER}{password}"


def create_route_line(target_campus: str, target_department: str, message: str) -> str:
    """Create an addressed request line."""
    return f"{target_campus}{ROUTE_DELIMITER}{target_department}{ROUTE_DELIMITER}{message}"


def create_ping(campus: str, department: str) -> bytes:
    """Create a liveness datagram."""
    return f"{campus}{PING_DELIMITER}{department}".encode('utf-8')
