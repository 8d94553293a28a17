"""Per-adapter session store mapping session ids to live transports."""

from __future__ import annotations

from typing import Dict, Generic, Iterator, List, Optional, Protocol, Tuple, TypeVar

import structlog

logger = structlog.get_logger(__name__)


class SupportsClose(Protocol):
    async def close(self) -> None: ...


TransportT = TypeVar("TransportT", bound=SupportsClose)


class SessionStore(Generic[TransportT]):
    """
    Map of session id to transport handle owned by exactly one adapter.

    Mutations happen on the event loop thread only, so insert and delete
    need no locking.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._sessions: Dict[str, TransportT] = {}

    def add(self, session_id: str, transport: TransportT) -> None:
        if session_id in self._sessions:
            raise ValueError(f"Session '{session_id}' already exists in {self.name} store")
        self._sessions[session_id] = transport
        logger.debug("Session stored", store=self.name, session_id=session_id, active=len(self._sessions))

    def get(self, session_id: str) -> Optional[TransportT]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[TransportT]:
        transport = self._sessions.pop(session_id, None)
        if transport is not None:
            logger.debug("Session removed", store=self.name, session_id=session_id, active=len(self._sessions))
        return transport

    def items(self) -> List[Tuple[str, TransportT]]:
        return list(self._sessions.items())

    async def close_all(self) -> int:
        """Remove and close every session; returns how many were closed."""
        drained = list(self._sessions.items())
        self._sessions.clear()
        for session_id, transport in drained:
            try:
                await transport.close()
            except Exception as exc:
                logger.warning("Error closing session", store=self.name, session_id=session_id, error=str(exc))
        return len(drained)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))

    def __len__(self) -> int:
        return len(self._sessions)
