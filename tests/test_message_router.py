#!/usr/bin/env python3
"""
Unit tests for server/chat/message_router.py and listing_responder.py

Tests the resolution policy:
- Exact (campus, department) delivery
- Campus-level fallback when the department is absent
- Routing error for a campus with no sessions
- Format and size errors are answered without forwarding
"""

import unittest
from datetime import datetime
from unittest.mock import patch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.constants import MAX_MESSAGE_SIZE
from common.errors import RoutingError
from common.protocol_definitions import RoutingEnvelope
from server.chat.listing_responder import ListingResponder
from server.chat.message_router import MessageRouter
from server.session.registry import SessionRegistry
from server.utils.logger import logger
from tests.fakes import FakeWriter


class RouterTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        patcher = patch.object(logger, '_write_to_file')
        patcher.start()
        self.addCleanup(patcher.stop)

        self.registry = SessionRegistry(max_sessions=10)
        self.listing = ListingResponder(self.registry)
        self.router = MessageRouter(self.registry, self.listing)

    async def add(self, campus, department):
        return await self.registry.register(campus, department, FakeWriter())


class TestMessageRouter(RouterTestCase):
    """Test cases for MessageRouter."""

    async def test_exact_routing(self):
        """Only the exact department receives the message, with sender identity."""
        a = await self.add("Lahore", "IT")
        b = await self.add("Lahore", "Sports")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore,IT,hello\n")

        self.assertEqual(a.writer.lines, ["[Karachi Admissions -> Lahore IT] hello"])
        self.assertEqual(b.writer.lines, [])
        self.assertEqual(c.writer.lines, [])

    async def test_fallback_routing(self):
        """With the department absent, any session of the campus receives it."""
        b = await self.add("Lahore", "Sports")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore,IT,hello")

        self.assertEqual(b.writer.lines, ["[Karachi Admissions -> Lahore IT] hello"])
        self.assertEqual(c.writer.lines, [])

    async def test_fallback_notice_when_enabled(self):
        self.router.notify_fallback = True
        await self.add("Lahore", "Sports")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore,IT,hello")

        self.assertEqual(c.writer.lines, [
            "[SERVER] Notice: Lahore IT not connected; delivered to Lahore Sports."
        ])

    async def test_no_notice_on_exact_match(self):
        self.router.notify_fallback = True
        await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore,IT,hello")
        self.assertEqual(c.writer.lines, [])

    async def test_unreachable_campus(self):
        a = await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Peshawar,IT,hello")

        self.assertEqual(c.writer.lines, ["[SERVER] Target campus Peshawar not connected."])
        self.assertEqual(a.writer.lines, [])

    async def test_route_raises_routing_error(self):
        c = await self.add("Karachi", "Admissions")
        with self.assertRaises(RoutingError) as ctx:
            await self.router.route(c, RoutingEnvelope("Multan", "IT", "hi"))
        self.assertEqual(ctx.exception.campus, "Multan")

    async def test_message_keeps_commas(self):
        a = await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore,IT,one, two, three")
        self.assertEqual(a.writer.lines, ["[Karachi Admissions -> Lahore IT] one, two, three"])

    async def test_format_error(self):
        a = await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore IT hello")

        self.assertEqual(c.writer.lines, ["[SERVER] Error: Use format TargetCampus,Dept,Message"])
        self.assertEqual(a.writer.lines, [])

    async def test_oversized_message(self):
        a = await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")

        await self.router.handle_line(c, "Lahore,IT," + "x" * (MAX_MESSAGE_SIZE + 1))

        self.assertEqual(c.writer.lines, [f"[SERVER] Error: Message exceeds {MAX_MESSAGE_SIZE} bytes"])
        self.assertEqual(a.writer.lines, [])

    async def test_blank_lines_are_ignored(self):
        c = await self.add("Karachi", "Admissions")
        await self.router.handle_line(c, "\r\n")
        await self.router.handle_line(c, "   \n")
        self.assertEqual(c.writer.lines, [])

    async def test_destination_write_failure_is_not_surfaced(self):
        a = await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")
        a.writer.fail = True

        await self.router.handle_line(c, "Lahore,IT,hello")

        self.assertEqual(c.writer.lines, [])

    async def test_removed_session_is_not_a_destination(self):
        a = await self.add("Lahore", "IT")
        c = await self.add("Karachi", "Admissions")
        await self.registry.remove(a)

        await self.router.handle_line(c, "Lahore,IT,hello")

        self.assertEqual(a.writer.lines, [])
        self.assertEqual(c.writer.lines, ["[SERVER] Target campus Lahore not connected."])


class TestListingResponder(RouterTestCase):
    """Test cases for LIST_REQUEST handling."""

    async def test_list_request(self):
        a = await self.add("Lahore", "IT")
        await self.add("Karachi", "Sports")
        seen = datetime(2024, 1, 2, 8, 15, 42).timestamp()
        await self.registry.touch("Karachi", "Sports", ("127.0.0.1", 7000), seen_at=seen)

        await self.router.handle_line(a, "LIST_REQUEST\n")

        self.assertEqual(a.writer.lines, [
            "[SERVER] Connected Campuses:",
            "  1. Lahore - IT (Last seen: never)",
            "  2. Karachi - Sports (Last seen: 08:15:42)",
            "----------------------------",
        ])

    async def test_listing_is_read_only(self):
        a = await self.add("Lahore", "IT")
        before = await self.registry.snapshot()
        await self.listing.send_listing(a)
        self.assertEqual(await self.registry.snapshot(), before)

    async def test_build_listing_without_sessions(self):
        block = await self.listing.build_listing()
        self.assertIn("No campuses connected.", block)


if __name__ == '__main__':
    unittest.main()
