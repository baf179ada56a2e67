"""
Server configuration module.

This module handles server-side configuration settings.
"""

from typing import Optional

from common.constants import (
    DEFAULT_SERVER_HOST, DEFAULT_TCP_PORT, DEFAULT_UDP_PORT, MAX_CLIENTS,
    MAX_NAME_LENGTH, MAX_MESSAGE_SIZE, MAX_PING_SIZE, STREAM_READ_LIMIT,
    HANDSHAKE_TIMEOUT
)


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_TCP_PORT,
                 udp_port: int = DEFAULT_UDP_PORT, max_clients: int = MAX_CLIENTS,
                 read_timeout: Optional[float] = None, notify_fallback: bool = False):
        self.host = host
        self.port = port
        self.udp_port = udp_port

        # Registry settings
        self.max_clients = max_clients

        # Protocol limits
        self.max_name_length = MAX_NAME_LENGTH
        self.max_message_size = MAX_MESSAGE_SIZE
        self.max_ping_size = MAX_PING_SIZE
        self.stream_read_limit = STREAM_READ_LIMIT

        # Connection settings
        self.handshake_timeout = HANDSHAKE_TIMEOUT  # seconds
        self.read_timeout = read_timeout  # None waits for the peer indefinitely

        # Routing settings
        self.notify_fallback = notify_fallback
