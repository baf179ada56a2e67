"""
Shared constants for the Campus Relay messaging system.

This module contains all constants used across client and server components.
"""

# Network Configuration
DEFAULT_HOST = '127.0.0.1'
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_TCP_PORT = 5000
DEFAULT_UDP_PORT = 6000
DEFAULT_CLIENT_UDP_PORT = 7000

# Limits
MAX_NAME_LENGTH = 39  # campus, department and password
MAX_MESSAGE_SIZE = 1024  # bytes of message payload
MAX_CLIENTS = 10
MAX_PING_SIZE = 256
STREAM_READ_LIMIT = 64 * 1024  # asyncio StreamReader buffer limit

# Timeouts
HEARTBEAT_INTERVAL = 10  # seconds
HANDSHAKE_TIMEOUT = 30  # seconds

# Liveness pings in the legacy form carry no department
DEFAULT_DEPARTMENT = 'Unknown'

# Logging
LOG_DIR = 'logs'
ROUTING_LOG_FILE = 'message_routing.log'

# Delimiters
AUTH_DELIMITER = ':'
ROUTE_DELIMITER = ','
PING_DELIMITER = '|'


class AuthReplies:
    OK = 'AUTH_OK'
    FAILED = 'AUTH_FAILED'
    SERVER_FULL = 'SERVER_FULL'
    ALREADY_CONNECTED = 'ALREADY_CONNECTED'
    BAD_FORMAT = 'BAD_FORMAT: Use Campus:Dept:Password'


class Requests:
    LIST = 'LIST_REQUEST'


class ConsoleCommands:
    LIST = 'list'
    BROADCAST = 'broadcast'
    HELP_TEXT = "Admin commands: 'list' or 'broadcast <message>'"
