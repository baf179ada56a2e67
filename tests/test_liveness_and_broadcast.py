#!/usr/bin/env python3
"""
Unit tests for the UDP side of the server:
- LivenessListener resolves pings and records reply addresses
- BroadcastDispatcher only reaches sessions with a known reply address
- OperatorConsole list/broadcast commands
"""

import asyncio
import socket
import unittest
from unittest.mock import AsyncMock, patch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.constants import ConsoleCommands
from server.control.broadcast_dispatcher import BroadcastDispatcher
from server.control.operator_console import OperatorConsole, format_session_table
from server.heartbeat.liveness_listener import LivenessListener
from server.session.registry import SessionRegistry
from server.utils.logger import logger
from tests.fakes import FakeWriter


def udp_socket(blocking: bool = True) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(('127.0.0.1', 0))
    sock.setblocking(blocking)
    return sock


class UdpTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        patcher = patch.object(logger, '_write_to_file')
        patcher.start()
        self.addCleanup(patcher.stop)
        self.registry = SessionRegistry(max_sessions=10)

    def make_socket(self, blocking: bool = True) -> socket.socket:
        sock = udp_socket(blocking)
        self.addCleanup(sock.close)
        return sock


class TestLivenessListener(UdpTestCase):
    """Test cases for LivenessListener."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.listener = LivenessListener(self.registry, host='127.0.0.1', port=0)

    async def test_ping_updates_session(self):
        await self.registry.register("Lahore", "IT", FakeWriter())

        updated = await self.listener.handle_datagram(b"Lahore|IT", ("10.1.1.1", 7000), received_at=42.0)

        self.assertEqual(updated.last_seen, 42.0)
        self.assertEqual(updated.reply_address, ("10.1.1.1", 7000))
        self.assertTrue(updated.udp_known)

    async def test_later_ping_moves_reply_address(self):
        await self.registry.register("Lahore", "IT", FakeWriter())
        await self.listener.handle_datagram(b"Lahore|IT", ("10.1.1.1", 7000), received_at=1.0)
        updated = await self.listener.handle_datagram(b"Lahore|IT", ("10.1.1.9", 7001), received_at=2.0)
        self.assertEqual(updated.reply_address, ("10.1.1.9", 7001))
        self.assertEqual(updated.last_seen, 2.0)

    async def test_legacy_ping_falls_back_to_campus(self):
        session = await self.registry.register("Karachi", "Sports", FakeWriter())
        updated = await self.listener.handle_datagram(b"Karachi", ("10.1.1.2", 7000))
        self.assertEqual(updated.sid, session.sid)

    async def test_unresolvable_and_malformed_pings_are_dropped(self):
        await self.registry.register("Lahore", "IT", FakeWriter())
        for data in [b"Quetta|IT", b"", b"\xff\xff", b"x" * 1000]:
            with self.subTest(data=data[:20]):
                self.assertIsNone(await self.listener.handle_datagram(data, ("10.1.1.3", 7000)))

        snapshot = (await self.registry.snapshot())[0]
        self.assertFalse(snapshot.udp_known)

    async def test_receives_over_udp(self):
        await self.registry.register("Multan", "IT", FakeWriter())
        self.listener.bind()
        task = asyncio.create_task(self.listener.start())
        self.addAsyncCleanup(self._stop_listener, task)

        sender = self.make_socket()
        sender.sendto(b"Multan|IT", ('127.0.0.1', self.listener.port))

        for _ in range(200):
            snapshot = (await self.registry.snapshot())[0]
            if snapshot.udp_known:
                break
            await asyncio.sleep(0.01)

        self.assertTrue(snapshot.udp_known)
        self.assertEqual(snapshot.reply_address, sender.getsockname())

    async def _stop_listener(self, task):
        self.listener.running = False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.listener.stop()


class TestBroadcastDispatcher(UdpTestCase):
    """Test cases for BroadcastDispatcher."""

    async def test_only_known_addresses_receive(self):
        server_sock = self.make_socket(blocking=False)
        receiver = self.make_socket()
        receiver.settimeout(2.0)

        await self.registry.register("Lahore", "IT", FakeWriter())
        await self.registry.register("Karachi", "IT", FakeWriter())
        await self.registry.touch("Lahore", "IT", receiver.getsockname())

        dispatcher = BroadcastDispatcher(self.registry, lambda: server_sock)
        sent = await dispatcher.broadcast("Campus closed on Friday")

        self.assertEqual(sent, 1)
        data, addr = await asyncio.to_thread(receiver.recvfrom, 4096)
        self.assertEqual(data, "Campus closed on Friday".encode('utf-8'))
        self.assertEqual(addr, server_sock.getsockname())

    async def test_no_socket(self):
        await self.registry.register("Lahore", "IT", FakeWriter())
        await self.registry.touch("Lahore", "IT", ("127.0.0.1", 9))
        dispatcher = BroadcastDispatcher(self.registry, lambda: None)
        self.assertEqual(await dispatcher.broadcast("hello"), 0)

    async def test_empty_registry(self):
        server_sock = self.make_socket(blocking=False)
        dispatcher = BroadcastDispatcher(self.registry, lambda: server_sock)
        self.assertEqual(await dispatcher.broadcast("hello"), 0)


class TestOperatorConsole(UdpTestCase):
    """Test cases for OperatorConsole."""

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.dispatcher = AsyncMock(spec=BroadcastDispatcher)
        self.dispatcher.broadcast.return_value = 2
        self.output = []
        self.console = OperatorConsole(self.registry, self.dispatcher, output=self.output.append)

    async def test_list(self):
        await self.registry.register("Lahore", "IT", FakeWriter(peer=('10.0.0.1', 40000)))
        await self.registry.register("Karachi", "Sports", FakeWriter())
        await self.registry.touch("Lahore", "IT", ("10.0.0.1", 7000))

        text = await self.console.handle_command("list\n")
        lines = text.splitlines()

        self.assertEqual(lines[0], "---- Connected campuses (2) ----")
        self.assertTrue(lines[1].startswith("1) Lahore | Dept: IT | Peer: 10.0.0.1:40000 | UDP known: 1 | lastSeen: "))
        self.assertNotIn("never", lines[1])
        self.assertTrue(lines[2].endswith("UDP known: 0 | lastSeen: never"))
        self.dispatcher.broadcast.assert_not_called()

    async def test_broadcast(self):
        text = await self.console.handle_command("broadcast Exams start Monday, 9am\n")
        self.dispatcher.broadcast.assert_awaited_once_with("Exams start Monday, 9am")
        self.assertEqual(text, "[ADMIN] Broadcast sent to 2 clients: Exams start Monday, 9am")

    async def test_broadcast_text_is_sent_as_typed(self):
        text = await self.console.handle_command("broadcast   Library closes early  \n")
        self.dispatcher.broadcast.assert_awaited_once_with("  Library closes early  ")
        self.assertEqual(text, "[ADMIN] Broadcast sent to 2 clients:   Library closes early  ")

    async def test_unknown_and_incomplete_commands(self):
        for line in ["help", "broadcast", "broadcast   ", "listing", "list all"]:
            with self.subTest(line=line):
                self.assertEqual(await self.console.handle_command(line), ConsoleCommands.HELP_TEXT)
        self.dispatcher.broadcast.assert_not_called()

    async def test_run_until_end_of_input(self):
        lines = iter(["list\n", "\n", "bogus\n", ""])
        self.console.readline = lambda: next(lines)

        await asyncio.wait_for(self.console.run(), timeout=2.0)

        self.assertIn("---- Connected campuses (0) ----", self.output[1])
        self.assertEqual(self.output[-1], ConsoleCommands.HELP_TEXT)
        self.assertFalse(self.console.running)

    def test_format_session_table_empty(self):
        self.assertEqual(format_session_table([]).splitlines()[0], "---- Connected campuses (0) ----")


if __name__ == '__main__':
    unittest.main()
