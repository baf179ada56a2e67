"""
Server logging module.

This module handles server-side logging functionality.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from common.constants import LOG_DIR, ROUTING_LOG_FILE


class ServerLogger:
    """Server logging class."""

    def __init__(self, logs_dir: str = LOG_DIR, log_level: int = logging.INFO):
        self.logs_dir = Path(logs_dir)

        # Set up main logger
        self.logger = logging.getLogger('campus_relay_server')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

        # Set up file paths
        self.routing_log_path = self.logs_dir / ROUTING_LOG_FILE

    def set_level(self, log_level: int):
        """Change the level of the logger and its handlers."""
        self.logger.setLevel(log_level)
        for handler in self.logger.handlers:
            handler.setLevel(log_level)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_connection(self, addr: Optional[Tuple]):
        """Log a new TCP connection awaiting credentials."""
        self.info(f"New TCP client connected from {addr}, awaiting credentials...")

    def log_auth(self, campus: str, department: str, outcome: str, sid: Optional[int] = None):
        """Log the outcome of a handshake."""
        if sid is not None:
            self.info(f"{campus} {department} authenticated, session sid={sid} started")
        else:
            self.warning(f"Handshake for {campus} {department} rejected: {outcome}")

    def log_disconnect(self, campus: str, department: str, sid: int, reason: str = "socket closed"):
        """Log session removal."""
        self.info(f"{campus} {department} (sid={sid}) disconnected: {reason}")

    def log_route(self, src: str, dst: str, requested: str, message: str):
        """Log a routed message."""
        if dst == requested:
            self.info(f"Routed message from {src} to {dst}")
        else:
            self.info(f"Routed message from {src} to {dst} ({requested} not found, sent to campus)")
        self._write_to_file(self.routing_log_path, f"{datetime.now().isoformat()} | ROUTE | {src} -> {dst} | {message}")

    def log_unroutable(self, src: str, requested: str):
        """Log a message whose target campus is not connected."""
        self.info(f"Could not route message from {src} to {requested} (not connected)")

    def log_heartbeat(self, campus: str, department: str, addr: Tuple, resolved: Optional[str]):
        """Log a liveness ping."""
        if resolved is None:
            self.info(f"[HEARTBEAT] Received from {campus} {department} at {addr} but no TCP session found")
        else:
            self.debug(f"[HEARTBEAT] {campus} {department} from {addr} -> {resolved}, last seen updated")

    def log_broadcast(self, message: str, sent: int, total: int):
        """Log an operator broadcast."""
        self.info(f"[ADMIN] Broadcast sent to {sent}/{total} sessions: {message}")
        self._write_to_file(self.routing_log_path, f"{datetime.now().isoformat()} | BROADCAST | {sent}/{total} | {message}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")

    def _write_to_file(self, file_path: Path, content: str):
        """Write content to log file."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'a', encoding='utf-8') as f:
                f.write(content + '\n')
        except OSError as e:
            self.error(f"Failed to write to log file {file_path}: {e}")


# Global logger instance
logger = ServerLogger()
