"""
Stream helpers for writing to session connections.

Callers must not hold the registry lock while using these.
"""

import asyncio

from common.protocol_definitions import encode_line
from server.utils.logger import logger


async def send_line(writer: asyncio.StreamWriter, text: str, label: str = "peer") -> bool:
    """Send one newline-terminated record. Failures are logged, not raised."""
    try:
        writer.write(encode_line(text))
        await writer.drain()
        return True
    except (ConnectionError, OSError, RuntimeError) as e:
        logger.warning(f"Failed to send to {label}: {e}")
        return False


async def close_writer(writer: asyncio.StreamWriter):
    """Close a stream and wait for the transport to finish."""
    if not writer.is_closing():
        writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionError, OSError) as e:
        logger.debug(f"Error while closing stream: {e}")
