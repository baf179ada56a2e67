"""
Broadcast dispatcher module.

Fans an operator message out over UDP to every session whose reply
address is known from a liveness ping.
"""

import asyncio
import socket
from typing import Callable, Optional

from server.session.registry import SessionRegistry
from server.utils.logger import logger


class BroadcastDispatcher:
    """Best-effort, unconfirmed UDP fan-out."""

    def __init__(self, registry: SessionRegistry, socket_provider: Callable[[], Optional[socket.socket]]):
        """
        Args:
            registry: Session registry to snapshot
            socket_provider: Returns the server's bound UDP socket
        """
        self.registry = registry
        self.socket_provider = socket_provider

    async def broadcast(self, message: str) -> int:
        """
        Send message to every session with a known reply address.

        Returns:
            Number of datagrams handed to the network
        """
        sessions = await self.registry.snapshot()
        targets = [s for s in sessions if s.udp_known and s.reply_address is not None]

        sock = self.socket_provider()
        if sock is None:
            logger.warning("[ADMIN] Broadcast skipped: UDP socket not bound")
            return 0

        data = message.encode('utf-8')
        loop = asyncio.get_running_loop()
        sent = 0
        for target in targets:
            try:
                await loop.sock_sendto(sock, data, target.reply_address)
                sent += 1
            except OSError as e:
                logger.warning(f"[ADMIN] Broadcast to {target.campus} {target.department} "
                               f"at {target.reply_address} failed: {e}")

        logger.log_broadcast(message, sent, len(sessions))
        return sent
