"""
Client configuration module.

This module handles client-side configuration settings.
"""

from common.constants import (
    DEFAULT_HOST, DEFAULT_TCP_PORT, DEFAULT_UDP_PORT, DEFAULT_CLIENT_UDP_PORT,
    HEARTBEAT_INTERVAL
)


class ClientConfig:
    """Client configuration class."""

    def __init__(self, campus: str, department: str, host: str = DEFAULT_HOST,
                 port: int = DEFAULT_TCP_PORT, udp_port: int = DEFAULT_UDP_PORT,
                 local_udp_port: int = DEFAULT_CLIENT_UDP_PORT):
        self.campus = campus
        self.department = department
        self.host = host
        self.port = port
        self.udp_port = udp_port

        # Fixed local port so the server can address broadcasts back to us
        self.local_udp_port = local_udp_port

        # Connection settings
        self.heartbeat_interval = HEARTBEAT_INTERVAL  # seconds

