import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path

from pydantic import BaseModel, Field

from .tmux_bridge import TmuxBridge
from .workspace import Workspace


logger = logging.getLogger(__name__)


class TerminalSize(BaseModel):
    width: int = Field(gt=0)
    """Terminal width in columns."""
    height: int = Field(gt=0)
    """Terminal height in rows."""


@dataclass
class SessionInfo:
    name: str
    socket_path: Path
    last_used: datetime
    """When the session was last resolved; informational only, sessions are never evicted."""


class SessionRegistry:
    """
    Resolves session names to live tmux sessions, creating them on demand.

    The registry only caches what it has seen; tmux is the source of truth for whether a session exists.
    """

    def __init__(
        self,
        workspace: Workspace,
        bridge: TmuxBridge,
        session_name_prefix: str = "ai-terminal-",
    ):
        self._workspace = workspace
        self._bridge = bridge
        self._session_name_prefix = session_name_prefix

        self._sessions: dict[str, SessionInfo] = {}

        # Used when the caller does not name a session
        self._last_session_name: str | None = None

    @property
    def last_session_name(self) -> str | None:
        return self._last_session_name

    @property
    def sessions(self) -> dict[str, SessionInfo]:
        return dict(self._sessions)

    def generate_session_name(self) -> str:
        return f'{self._session_name_prefix}{uuid.uuid4().hex[:8]}'

    async def resolve_session(
        self,
        session_name: str | None = None,
        terminal_size: TerminalSize | None = None,
    ) -> str:
        """Returns the name of a live session, creating it if necessary.

        :param session_name: The session to use.
        If omitted, the last resolved session is reused, or a new name is generated if there is none.
        :param terminal_size: The size for a newly created session; ignored if the session already exists.
        :return: The resolved session name.
        """

        socket_path = await self._workspace.ensure_ready()

        if not session_name:
            session_name = self._last_session_name or self.generate_session_name()

        if not await self._bridge.has_session(session_name):
            if session_name in self._sessions:
                logger.warning(f'Session {session_name} disappeared from tmux; recreating it')

            if terminal_size is not None:
                await self._bridge.new_session(session_name, width=terminal_size.width, height=terminal_size.height)
            else:
                await self._bridge.new_session(session_name)

        self._last_session_name = session_name
        self._sessions[session_name] = SessionInfo(
            name=session_name,
            socket_path=socket_path,
            last_used=datetime.now(UTC),
        )

        return session_name

    def forget(self, session_name: str):
        self._sessions.pop(session_name, None)
        if self._last_session_name == session_name:
            self._last_session_name = None

    def clear(self):
        self._sessions.clear()
        self._last_session_name = None
