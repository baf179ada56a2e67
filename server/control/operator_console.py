"""
Operator console module.

Reads local admin commands from stdin:
    list                 show connected campuses
    broadcast <message>  send <message> over UDP to every known client
"""

import asyncio
import sys
import threading
from typing import Callable, List, Optional, Tuple

from common.constants import ConsoleCommands
from common.protocol_definitions import format_clock
from server.control.broadcast_dispatcher import BroadcastDispatcher
from server.session.registry import SessionRegistry, SessionSnapshot
from server.utils.logger import logger


def _format_addr(addr: Optional[Tuple]) -> str:
    if not addr:
        return "-"
    return f"{addr[0]}:{addr[1]}"


def format_session_table(sessions: List[SessionSnapshot]) -> str:
    """Render the operator view of the registry."""
    lines = [f"---- Connected campuses ({len(sessions)}) ----"]
    for i, s in enumerate(sessions, start=1):
        last_seen = format_clock(s.last_seen, '%Y-%m-%d %H:%M:%S')
        lines.append(
            f"{i}) {s.campus} | Dept: {s.department} | Peer: {_format_addr(s.peer)} | "
            f"UDP known: {int(s.udp_known)} | lastSeen: {last_seen}"
        )
    lines.append("-" * 30)
    return '\n'.join(lines)


class OperatorConsole:
    """Local admin console driving listings and broadcasts."""

    def __init__(self, registry: SessionRegistry, dispatcher: BroadcastDispatcher,
                 readline: Callable[[], str] = sys.stdin.readline,
                 output: Callable[[str], None] = print):
        self.registry = registry
        self.dispatcher = dispatcher
        self.readline = readline
        self.output = output
        self.running = False

    async def handle_command(self, line: str) -> str:
        """Execute one console line and return the text to show the operator."""
        line = line.rstrip('\r\n')
        command, _, message = line.partition(' ')

        if line.strip() == ConsoleCommands.LIST:
            sessions = await self.registry.snapshot()
            return format_session_table(sessions)

        # The broadcast text is sent exactly as typed
        if command == ConsoleCommands.BROADCAST and message.strip():
            sent = await self.dispatcher.broadcast(message)
            return f"[ADMIN] Broadcast sent to {sent} clients: {message}"

        return ConsoleCommands.HELP_TEXT

    def _read_input(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        """Blocking stdin reader, run on a daemon thread."""
        while True:
            line = self.readline()
            try:
                loop.call_soon_threadsafe(queue.put_nowait, line)
            except RuntimeError:
                # Event loop already closed
                return
            if not line:
                return

    async def run(self):
        """Read commands until stdin is closed."""
        self.running = True
        self.output("[SERVER] Admin console ready. Type 'list' or 'broadcast <message>'")

        loop = asyncio.get_running_loop()
        lines: asyncio.Queue = asyncio.Queue()
        reader_thread = threading.Thread(target=self._read_input, args=(loop, lines), daemon=True)
        reader_thread.start()

        while self.running:
            line = await lines.get()
            if not line:
                logger.info("Admin console input closed")
                break
            if not line.strip():
                continue
            self.output(await self.handle_command(line))

        self.running = False

    def stop(self):
        self.running = False
