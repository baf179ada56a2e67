#!/usr/bin/env python3
"""
Liveness Listener - Receives UDP heartbeats from campus clients.

Each client sends "campus|department" (or a bare "campus" in the legacy
form) every few seconds from a fixed local port. The listener resolves the
sender to a session and records the time and the source address, which is
where operator broadcasts are later sent.
"""

import asyncio
import socket
import time
from typing import Optional, Tuple

from common.constants import DEFAULT_SERVER_HOST, DEFAULT_UDP_PORT, MAX_NAME_LENGTH, MAX_PING_SIZE
from common.errors import ProtocolParseError
from common.protocol_definitions import parse_ping
from server.session.registry import SessionRegistry, SessionSnapshot
from server.utils.logger import logger


class LivenessListener:
    """UDP listener that keeps session liveness state current."""

    def __init__(self, registry: SessionRegistry, host: str = DEFAULT_SERVER_HOST,
                 port: int = DEFAULT_UDP_PORT, max_name: int = MAX_NAME_LENGTH,
                 max_ping_size: int = MAX_PING_SIZE):
        self.registry = registry
        self.host = host
        self.port = port
        self.max_name = max_name
        self.max_ping_size = max_ping_size

        self.socket: Optional[socket.socket] = None
        self.running = False

    def bind(self) -> socket.socket:
        """Bind the UDP socket. Raises OSError when the port is unavailable."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        sock.setblocking(False)
        self.socket = sock
        self.port = sock.getsockname()[1]
        return sock

    async def handle_datagram(self, data: bytes, addr: Tuple[str, int],
                              received_at: Optional[float] = None) -> Optional[SessionSnapshot]:
        """Apply one ping. Returns the updated session, or None when nothing matched."""
        if len(data) > self.max_ping_size:
            logger.warning(f"[HEARTBEAT] Dropping oversized ping ({len(data)} bytes) from {addr}")
            return None

        try:
            ping = parse_ping(data, self.max_name)
        except ProtocolParseError as e:
            logger.warning(f"[HEARTBEAT] Malformed ping from {addr}: {e}")
            return None

        seen_at = time.time() if received_at is None else received_at
        updated = await self.registry.touch(ping.campus, ping.department, addr, seen_at)

        resolved = None if updated is None else f"{updated.campus} {updated.department}"
        logger.log_heartbeat(ping.campus, ping.department, addr, resolved)
        return updated

    async def start(self):
        """Receive pings until stopped."""
        if self.socket is None:
            self.bind()

        self.running = True
        logger.info(f"UDP liveness listener on {self.host}:{self.port}")

        loop = asyncio.get_running_loop()
        while self.running:
            try:
                # One extra byte so oversized pings are detectable
                data, addr = await loop.sock_recvfrom(self.socket, self.max_ping_size + 1)
            except OSError as e:
                if not self.running:
                    break
                logger.warning(f"[HEARTBEAT] Receive error: {e}")
                continue
            await self.handle_datagram(data, addr)

    def stop(self):
        """Stop the listener and release the socket."""
        self.running = False
        if self.socket:
            self.socket.close()
            self.socket = None
