"""
Message router module.

This module parses requests read from an authenticated session stream and
forwards addressed messages to the resolved destination session.
"""

from common.constants import Requests, MAX_NAME_LENGTH, MAX_MESSAGE_SIZE
from common.errors import ProtocolParseError, MessageTooLarge, RoutingError
from common.protocol_definitions import (
    RoutingEnvelope, parse_route_line, strip_line, format_envelope,
    create_format_error_reply, create_oversize_error_reply,
    create_routing_error_reply, create_fallback_notice
)
from server.chat.listing_responder import ListingResponder
from server.session.registry import Session, SessionRegistry
from server.session.stream import send_line
from server.utils.logger import logger


class MessageRouter:
    """Routes addressed messages between campus sessions."""

    def __init__(self, registry: SessionRegistry, listing: ListingResponder,
                 max_name: int = MAX_NAME_LENGTH, max_message: int = MAX_MESSAGE_SIZE,
                 notify_fallback: bool = False):
        self.registry = registry
        self.listing = listing
        self.max_name = max_name
        self.max_message = max_message
        self.notify_fallback = notify_fallback

    async def handle_line(self, sender: Session, line: str):
        """
        Dispatch one line received from a session.

        LIST_REQUEST goes to the listing responder. Anything else must be
        TargetCampus,Dept,Message. Parse and routing errors are answered on
        the sender's stream and never end the session.
        """
        text = strip_line(line)
        if not text.strip():
            return

        logger.debug(f"[TCP][{sender.label}] >> {text}")

        if text.strip() == Requests.LIST:
            await self.listing.send_listing(sender)
            return

        try:
            envelope = parse_route_line(text, self.max_name, self.max_message)
        except MessageTooLarge as e:
            logger.warning(f"Oversized message from {sender.label}: {e}")
            await send_line(sender.writer, create_oversize_error_reply(self.max_message), sender.label)
            return
        except ProtocolParseError as e:
            logger.info(f"Invalid message format from {sender.label}: {e}")
            await send_line(sender.writer, create_format_error_reply(), sender.label)
            return

        try:
            await self.route(sender, envelope)
        except RoutingError as e:
            await send_line(sender.writer, create_routing_error_reply(e.campus), sender.label)

    async def route(self, sender: Session, envelope: RoutingEnvelope) -> Session:
        """
        Forward an envelope using exact match, then campus fallback.

        Returns:
            The session the message was written to

        Raises:
            RoutingError: no session is connected for the target campus
        """
        requested = f"{envelope.target_campus} {envelope.target_department}"
        destination, exact = await self.registry.resolve(
            envelope.target_campus, envelope.target_department
        )

        if destination is None:
            logger.log_unroutable(sender.label, requested)
            raise RoutingError(envelope.target_campus, envelope.target_department)

        forward = format_envelope(
            sender.campus, sender.department,
            envelope.target_campus, envelope.target_department,
            envelope.payload
        )
        # Fire and forget: a failed write to the destination is only logged
        await send_line(destination.writer, forward, destination.label)
        logger.log_route(sender.label, destination.label, requested, envelope.payload)

        if not exact and self.notify_fallback:
            await self._notify_fallback(sender, envelope, destination)

        return destination

    async def _notify_fallback(self, sender: Session, envelope: RoutingEnvelope,
                               destination: Session):
        notice = create_fallback_notice(
            envelope.target_campus, envelope.target_department, destination.department
        )
        await send_line(sender.writer, notice, sender.label)
