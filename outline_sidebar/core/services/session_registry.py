from __future__ import annotations

"""Side table of view sessions keyed by surface identity.

A session lives exactly as long as its surface: the registry drops it from a
workspace kill hook.
"""

import logging
from typing import Dict, List, Optional, Tuple

from outline_sidebar.core.buffers import Buffer, Workspace
from outline_sidebar.core.exceptions import SourceGoneError
from outline_sidebar.core.models import ViewSession

logger = logging.getLogger(__name__)

__all__ = ["SessionRegistry"]


class SessionRegistry:
    """Map surfaces to the :class:`ViewSession` that produced them."""

    def __init__(self, workspace: Optional[Workspace] = None) -> None:
        self._sessions: Dict[int, Tuple[Buffer, ViewSession]] = {}
        if workspace is not None:
            workspace.add_kill_hook(self.detach)

    def attach(self, surface: Buffer, session: ViewSession) -> None:
        self._sessions[id(surface)] = (surface, session)

    def get(self, surface: Buffer) -> Optional[ViewSession]:
        entry = self._sessions.get(id(surface))
        if entry is None or entry[0] is not surface:
            return None
        return entry[1]

    def detach(self, surface: Buffer) -> None:
        entry = self._sessions.get(id(surface))
        if entry is not None and entry[0] is surface:
            del self._sessions[id(surface)]
            logger.debug("Session detached from %s", surface.name)

    def surfaces_for(self, source: Buffer) -> List[Buffer]:
        return [surface for surface, session in self._sessions.values() if session.source is source]

    def __len__(self) -> int:
        return len(self._sessions)

    @staticmethod
    def resolve_source(session: ViewSession) -> Buffer:
        """Return the session's source buffer or raise :class:`SourceGoneError`.

        Every document the session queries must still exist as well.
        """
        for buf in (session.source,) + tuple(session.documents):
            if not buf.live:
                raise SourceGoneError("Source buffer no longer exists", buf.name)
        return session.source
