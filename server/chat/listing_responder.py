"""
Listing responder module.

Answers LIST_REQUEST with the connected campuses and their last liveness ping.
"""

from common.protocol_definitions import create_listing_block
from server.session.registry import Session, SessionRegistry
from server.session.stream import send_line
from server.utils.logger import logger


class ListingResponder:
    """Serializes a registry snapshot for a requesting session."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def build_listing(self) -> str:
        """Build the listing block from a snapshot taken under the registry lock."""
        sessions = await self.registry.snapshot()
        return create_listing_block(
            (s.campus, s.department, s.last_seen) for s in sessions
        )

    async def send_listing(self, requester: Session) -> bool:
        """Send the listing block to the requester."""
        block = await self.build_listing()
        sent = await send_line(requester.writer, block, requester.label)
        if sent:
            logger.info(f"Sent campus list to {requester.label}")
        return sent
