"""
Session registry module.

Owns the set of authenticated sessions and the single lock that serializes
every read and write of session and liveness state. Callers receive Session
references or SessionSnapshot copies and do their network I/O after the
lock has been released.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from common.constants import MAX_CLIENTS
from common.errors import CapacityExceeded, DuplicateSession


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time copy of a session, safe to use outside the registry lock."""
    sid: int
    campus: str
    department: str
    peer: Optional[Tuple]
    connected_at: float
    last_seen: Optional[float]
    reply_address: Optional[Tuple[str, int]]
    udp_known: bool


class Session:
    """One authenticated campus/department connection."""

    def __init__(self, sid: int, campus: str, department: str,
                 writer: asyncio.StreamWriter, peer: Optional[Tuple] = None):
        self.sid = sid
        self.campus = campus
        self.department = department
        self.writer = writer
        self.peer = peer
        self.connected_at = time.time()

        # Liveness state, filled in by the first resolvable ping
        self.last_seen: Optional[float] = None
        self.reply_address: Optional[Tuple[str, int]] = None
        self.udp_known = False

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.campus, self.department)

    @property
    def label(self) -> str:
        return f"{self.campus} {self.department}"

    def mark_seen(self, reply_address: Tuple[str, int], seen_at: float):
        self.last_seen = seen_at
        self.reply_address = reply_address
        self.udp_known = True

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            sid=self.sid,
            campus=self.campus,
            department=self.department,
            peer=self.peer,
            connected_at=self.connected_at,
            last_seen=self.last_seen,
            reply_address=self.reply_address,
            udp_known=self.udp_known
        )

    def __repr__(self):
        return f"Session(sid={self.sid}, campus={self.campus!r}, department={self.department!r})"


class SessionRegistry:
    """Bounded, lock-guarded collection of sessions keyed by (campus, department)."""

    def __init__(self, max_sessions: int = MAX_CLIENTS):
        self.max_sessions = max_sessions
        self._sessions: Dict[Tuple[str, str], Session] = {}  # insertion ordered
        self._next_sid = 1
        self.lock = asyncio.Lock()

    async def register(self, campus: str, department: str, writer: asyncio.StreamWriter,
                       peer: Optional[Tuple] = None) -> Session:
        """
        Add a session for a freshly authenticated connection.

        Raises:
            DuplicateSession: the (campus, department) pair is already live
            CapacityExceeded: the registry holds max_sessions sessions
        """
        async with self.lock:
            key = (campus, department)
            if key in self._sessions:
                raise DuplicateSession(f"{campus} {department} is already connected")
            if len(self._sessions) >= self.max_sessions:
                raise CapacityExceeded(f"Registry full ({self.max_sessions} sessions)")

            session = Session(self._next_sid, campus, department, writer, peer)
            self._next_sid += 1
            self._sessions[key] = session
            return session

    async def remove(self, session: Session) -> Optional[Session]:
        """Remove a session if it is still the live holder of its identity."""
        async with self.lock:
            current = self._sessions.get(session.identity)
            if current is None or current.sid != session.sid:
                return None
            del self._sessions[session.identity]
            return current

    async def find_exact(self, campus: str, department: str) -> Optional[Session]:
        async with self.lock:
            return self._sessions.get((campus, department))

    async def find_by_campus(self, campus: str) -> Optional[Session]:
        async with self.lock:
            return self._first_for_campus(campus)

    async def resolve(self, campus: str, department: str) -> Tuple[Optional[Session], bool]:
        """
        Resolve a destination: exact match first, then any session of the campus.

        Returns:
            (session or None, True when the match was exact)
        """
        async with self.lock:
            return self._resolve(campus, department)

    async def touch(self, campus: str, department: str, reply_address: Tuple[str, int],
                    seen_at: Optional[float] = None) -> Optional[SessionSnapshot]:
        """Record a liveness ping against the resolved session, if any."""
        async with self.lock:
            session, _ = self._resolve(campus, department)
            if session is None:
                return None
            session.mark_seen(reply_address, time.time() if seen_at is None else seen_at)
            return session.snapshot()

    async def snapshot(self) -> List[SessionSnapshot]:
        """Copy every session out in registration order."""
        async with self.lock:
            return [session.snapshot() for session in self._sessions.values()]

    async def count(self) -> int:
        async with self.lock:
            return len(self._sessions)

    async def is_full(self) -> bool:
        async with self.lock:
            return len(self._sessions) >= self.max_sessions

    async def close_all(self) -> List[Session]:
        """Drop every session and hand them back so their streams can be closed."""
        async with self.lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            return sessions

    def _first_for_campus(self, campus: str) -> Optional[Session]:
        for session in self._sessions.values():
            if session.campus == campus:
                return session
        return None

    def _resolve(self, campus: str, department: str) -> Tuple[Optional[Session], bool]:
        session = self._sessions.get((campus, department))
        if session is not None:
            return session, True
        return self._first_for_campus(campus), False
