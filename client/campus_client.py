"""
Campus client module.

Protocol client for one campus department: authenticates over TCP, sends
addressed messages and listing requests, keeps the server's liveness record
fresh with UDP heartbeats and receives admin broadcasts on the same UDP port.
"""

import asyncio
import socket
from typing import List, Optional

from client.utils.config import ClientConfig
from client.utils.logger import logger
from common.constants import (
    AuthReplies, Requests, DEFAULT_HOST, DEFAULT_TCP_PORT, DEFAULT_UDP_PORT,
    DEFAULT_CLIENT_UDP_PORT
)
from common.errors import AuthenticationFailed
from common.protocol_definitions import (
    encode_line, create_auth_line, create_route_line, create_ping
)

BROADCAST_BUFFER_SIZE = 65536


class CampusClient:
    """Client for a single campus/department endpoint."""

    def __init__(self, campus: str, department: str, host: str = DEFAULT_HOST,
                 port: int = DEFAULT_TCP_PORT, udp_port: int = DEFAULT_UDP_PORT,
                 local_udp_port: int = DEFAULT_CLIENT_UDP_PORT):
        self.config = ClientConfig(campus, department, host, port, udp_port, local_udp_port)
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.udp_socket: Optional[socket.socket] = None
        self.heartbeat_task: Optional[asyncio.Task] = None
        self.running = False

    @property
    def label(self) -> str:
        return f"{self.config.campus} {self.config.department}"

    async def connect(self, password: str) -> str:
        """
        Open the session stream and authenticate.

        Returns:
            The server's reply (AUTH_OK)

        Raises:
            AuthenticationFailed: the server refused the credentials or closed
            OSError: the server could not be reached
        """
        try:
            self.reader, self.writer = await asyncio.open_connection(self.config.host, self.config.port)
        except OSError:
            logger.log_connection(self.config.host, self.config.port, False)
            raise
        logger.log_connection(self.config.host, self.config.port, True)

        await self.send_line(create_auth_line(self.config.campus, self.config.department, password))
        reply = await self.read_line()
        logger.log_login(self.config.campus, self.config.department, reply or "connection closed")

        if reply != AuthReplies.OK:
            await self.close()
            raise AuthenticationFailed(reply or "connection closed")

        self.running = True
        return reply

    async def send_line(self, text: str):
        """Send one line on the session stream."""
        if self.writer is None:
            raise ConnectionError("Not connected to server")
        self.writer.write(encode_line(text))
        await self.writer.drain()

    async def send_message(self, target_campus: str, target_department: str, text: str):
        """Send text to a campus department through the server."""
        if '\n' in text:
            raise ValueError("Message must be a single line")
        await self.send_line(create_route_line(target_campus, target_department, text))

    async def request_list(self):
        """Ask the server for the connected campuses."""
        await self.send_line(Requests.LIST)

    async def read_line(self) -> Optional[str]:
        """Read the next server line, or None once the server closed the stream."""
        if self.reader is None:
            raise ConnectionError("Not connected to server")
        data = await self.reader.readline()
        if not data:
            return None
        return data.decode('utf-8').rstrip('\r\n')

    async def read_listing(self) -> List[str]:
        """Read a listing block up to its dashed footer."""
        lines = []
        while True:
            line = await self.read_line()
            if line is None:
                break
            lines.append(line)
            if line and set(line) == {'-'}:
                break
        return lines

    def bind_udp(self) -> socket.socket:
        """Bind the local UDP port used for heartbeats and broadcasts."""
        if self.udp_socket is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                sock.bind(('', self.config.local_udp_port))
            except OSError:
                sock.close()
                raise
            sock.setblocking(False)
            self.udp_socket = sock
            self.config.local_udp_port = sock.getsockname()[1]
        return self.udp_socket

    async def send_heartbeat(self):
        """Send one campus|department liveness ping."""
        sock = self.bind_udp()
        loop = asyncio.get_running_loop()
        await loop.sock_sendto(sock, create_ping(self.config.campus, self.config.department),
                               (self.config.host, self.config.udp_port))

    async def _heartbeat_loop(self, interval: float):
        while True:
            try:
                await self.send_heartbeat()
            except OSError as e:
                logger.log_error("heartbeat", e)
            await asyncio.sleep(interval)

    def start_heartbeat(self, interval: Optional[float] = None) -> asyncio.Task:
        """Send a heartbeat now and then every interval seconds."""
        self.bind_udp()
        if self.heartbeat_task is None or self.heartbeat_task.done():
            self.heartbeat_task = asyncio.create_task(
                self._heartbeat_loop(interval or self.config.heartbeat_interval)
            )
        return self.heartbeat_task

    async def receive_broadcast(self) -> str:
        """Wait for the next admin broadcast datagram."""
        sock = self.bind_udp()
        loop = asyncio.get_running_loop()
        data, _ = await loop.sock_recvfrom(sock, BROADCAST_BUFFER_SIZE)
        return data.decode('utf-8', errors='replace')

    async def close(self):
        """Stop heartbeats and close both sockets."""
        self.running = False

        if self.heartbeat_task:
            self.heartbeat_task.cancel()
            try:
                await self.heartbeat_task
            except asyncio.CancelledError:
                pass
            self.heartbeat_task = None

        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error while closing connection: {e}")
            self.writer = None
            self.reader = None

        if self.udp_socket:
            self.udp_socket.close()
            self.udp_socket = None
