#!/usr/bin/env python3
"""
Campus Relay Server - Main Entry Point

This is the main entry point for the server application.
It wires the session registry, the TCP acceptor and message router, the UDP
liveness listener and the operator console into one server.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Set

from common.constants import AuthReplies
from common.errors import ProtocolParseError, AuthError, CapacityExceeded, DuplicateSession
from common.protocol_definitions import parse_auth_line, create_oversize_error_reply, create_format_error_reply
from server.auth.authenticator import Authenticator
from server.chat.listing_responder import ListingResponder
from server.chat.message_router import MessageRouter
from server.control.broadcast_dispatcher import BroadcastDispatcher
from server.control.operator_console import OperatorConsole
from server.heartbeat.liveness_listener import LivenessListener
from server.session.registry import Session, SessionRegistry
from server.session.stream import send_line, close_writer
from server.utils.config import ServerConfig
from server.utils.logger import logger


class CampusRelayServer:
    """Main server class that integrates all functionality."""

    def __init__(self, config: Optional[ServerConfig] = None,
                 authenticator: Optional[Authenticator] = None,
                 console_enabled: bool = True):
        self.config = config or ServerConfig()
        self.authenticator = authenticator or Authenticator()

        # Initialize modules
        self.registry = SessionRegistry(self.config.max_clients)
        self.listing = ListingResponder(self.registry)
        self.router = MessageRouter(
            self.registry, self.listing,
            max_name=self.config.max_name_length,
            max_message=self.config.max_message_size,
            notify_fallback=self.config.notify_fallback
        )
        self.liveness_listener = LivenessListener(
            self.registry, self.config.host, self.config.udp_port,
            max_name=self.config.max_name_length,
            max_ping_size=self.config.max_ping_size
        )
        self.dispatcher = BroadcastDispatcher(self.registry, lambda: self.liveness_listener.socket)
        self.console = OperatorConsole(self.registry, self.dispatcher) if console_enabled else None

        self.tcp_server: Optional[asyncio.AbstractServer] = None
        self.tcp_port: Optional[int] = None
        self.udp_port: Optional[int] = None
        self.session_tasks: Set[asyncio.Task] = set()
        self.background_tasks: Set[asyncio.Task] = set()

    async def authenticate_connection(self, reader: asyncio.StreamReader,
                                      writer: asyncio.StreamWriter) -> Optional[Session]:
        """
        Run the Campus:Dept:Password handshake.

        Returns:
            The registered session, or None when the connection was refused
        """
        peer = writer.get_extra_info('peername')
        logger.log_connection(peer)

        try:
            data = await asyncio.wait_for(reader.readline(), self.config.handshake_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No credentials from {peer} within {self.config.handshake_timeout}s")
            return None
        except ValueError:
            # Line longer than the stream limit
            await send_line(writer, AuthReplies.BAD_FORMAT, str(peer))
            logger.warning(f"Oversized handshake from {peer}")
            return None
        except (ConnectionError, OSError) as e:
            logger.warning(f"Connection from {peer} failed during handshake: {e}")
            return None

        if not data:
            logger.info(f"{peer} closed before sending credentials")
            return None

        try:
            request = parse_auth_line(data.decode('utf-8'), self.config.max_name_length)
        except (UnicodeDecodeError, ProtocolParseError) as e:
            logger.warning(f"Bad handshake from {peer}: {e}")
            await send_line(writer, AuthReplies.BAD_FORMAT, str(peer))
            return None

        try:
            self.authenticator.verify(request.campus, request.password)
            session = await self.registry.register(request.campus, request.department, writer, peer)
        except AuthError:
            logger.log_auth(request.campus, request.department, "authentication failed")
            await send_line(writer, AuthReplies.FAILED, str(peer))
            return None
        except CapacityExceeded:
            logger.log_auth(request.campus, request.department, "server full")
            await send_line(writer, AuthReplies.SERVER_FULL, str(peer))
            return None
        except DuplicateSession:
            logger.log_auth(request.campus, request.department, "already connected")
            await send_line(writer, AuthReplies.ALREADY_CONNECTED, str(peer))
            return None

        await send_line(writer, AuthReplies.OK, session.label)
        logger.log_auth(session.campus, session.department, "ok", sid=session.sid)
        return session

    async def read_session(self, session: Session, reader: asyncio.StreamReader) -> str:
        """
        Read and route lines until the peer goes away.

        Returns:
            Reason the session ended
        """
        # Set while the rest of an over-limit line is being dropped
        discarding = False

        while True:
            try:
                data = await asyncio.wait_for(reader.readuntil(b'\n'), self.config.read_timeout)
            except asyncio.IncompleteReadError as e:
                # EOF; an unterminated last line is still handled
                if discarding or not e.partial:
                    return "socket closed"
                data = e.partial
            except asyncio.LimitOverrunError as e:
                # Drop what is buffered and keep dropping up to the next newline
                await reader.readexactly(e.consumed)
                if not discarding:
                    discarding = True
                    logger.warning(f"Line over stream limit from {session.label}")
                    await send_line(session.writer, create_oversize_error_reply(self.config.max_message_size),
                                    session.label)
                continue

            if discarding:
                discarding = False
                continue

            try:
                text = data.decode('utf-8')
            except UnicodeDecodeError:
                logger.warning(f"Undecodable line from {session.label}")
                await send_line(session.writer, create_format_error_reply(), session.label)
                continue

            await self.router.handle_line(session, text)

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle individual client connection."""
        task = asyncio.current_task()
        self.session_tasks.add(task)
        session = None
        reason = "socket closed"

        try:
            session = await self.authenticate_connection(reader, writer)
            if session is None:
                return
            reason = await self.read_session(session, reader)

        except asyncio.TimeoutError:
            reason = f"no data for {self.config.read_timeout}s"
        except (ConnectionError, OSError) as e:
            reason = f"read failed: {e}"
        except asyncio.CancelledError:
            reason = "server shutting down"
            raise
        except Exception as e:
            reason = f"internal error: {e}"
            logger.log_error(f"session {session.label if session else writer.get_extra_info('peername')}", e)
        finally:
            if session is not None:
                removed = await self.registry.remove(session)
                if removed is not None:
                    logger.log_disconnect(session.campus, session.department, session.sid, reason)
            await close_writer(writer)
            self.session_tasks.discard(task)

    def _spawn(self, coro, name: str) -> asyncio.Task:
        """Start a background task and log it if it dies with an exception."""
        task = asyncio.create_task(coro, name=name)
        self.background_tasks.add(task)

        def callback(t: asyncio.Task):
            self.background_tasks.discard(t)
            if not t.cancelled() and t.exception():
                logger.error(f"{name} task failed with exception: {t.exception()}")

        task.add_done_callback(callback)
        return task

    async def start(self):
        """
        Bind both endpoints and start the background tasks.

        Raises:
            OSError: a listening endpoint could not be bound
        """
        self.liveness_listener.bind()
        self.udp_port = self.liveness_listener.port

        self.tcp_server = await asyncio.start_server(
            self.handle_client,
            self.config.host,
            self.config.port,
            limit=self.config.stream_read_limit
        )
        self.tcp_port = self.tcp_server.sockets[0].getsockname()[1]

        self._spawn(self.liveness_listener.start(), "Liveness listener")
        if self.console:
            self._spawn(self.console.run(), "Admin console")

        addr = ', '.join(str(sock.getsockname()) for sock in self.tcp_server.sockets)
        logger.info(f"TCP listening on {addr}")
        logger.info(f"UDP listening on port {self.udp_port}")

    async def stop(self):
        """Close endpoints, end every session and cancel background tasks."""
        if self.tcp_server:
            self.tcp_server.close()

        self.liveness_listener.running = False
        if self.console:
            self.console.stop()

        for task in list(self.background_tasks):
            task.cancel()
        if self.background_tasks:
            await asyncio.gather(*self.background_tasks, return_exceptions=True)
        self.liveness_listener.stop()

        for session in await self.registry.close_all():
            await close_writer(session.writer)
        if self.session_tasks:
            # Connections still in the handshake are not in the registry
            _, pending = await asyncio.wait(list(self.session_tasks), timeout=1.0)
            for task in pending:
                task.cancel()

        if self.tcp_server:
            await self.tcp_server.wait_closed()
            self.tcp_server = None

    async def run(self):
        """Start the server and serve until cancelled."""
        try:
            await self.start()
            await self.tcp_server.serve_forever()
        finally:
            await self.stop()


def build_parser() -> argparse.ArgumentParser:
    config = ServerConfig()
    parser = argparse.ArgumentParser(description='Campus Relay Server')
    parser.add_argument('--host', type=str, default=config.host,
                        help=f'Host to bind to (default: {config.host})')
    parser.add_argument('--port', type=int, default=config.port,
                        help=f'TCP port for campus sessions (default: {config.port})')
    parser.add_argument('--udp-port', type=int, default=config.udp_port,
                        help=f'UDP port for heartbeats and broadcasts (default: {config.udp_port})')
    parser.add_argument('--max-clients', type=int, default=config.max_clients,
                        help=f'Maximum concurrent sessions (default: {config.max_clients})')
    parser.add_argument('--read-timeout', type=float, default=None,
                        help='Drop sessions idle for this many seconds (default: never)')
    parser.add_argument('--notify-fallback', action='store_true',
                        help='Tell the sender when a message went to another department of the campus')
    parser.add_argument('--no-console', action='store_true',
                        help='Do not read admin commands from stdin')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.debug:
        logger.set_level(logging.DEBUG)

    config = ServerConfig(
        host=args.host,
        port=args.port,
        udp_port=args.udp_port,
        max_clients=args.max_clients,
        read_timeout=args.read_timeout,
        notify_fallback=args.notify_fallback
    )
    server = CampusRelayServer(config, console_enabled=not args.no_console)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    except OSError as e:
        logger.error(f"Server failed to start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
