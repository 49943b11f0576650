import asyncio
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from .terminal.errors import SessionNameRequiredError, TerminalBridgeError
from .terminal.key_notation import ENTER, parse_keys
from .terminal.session_registry import SessionRegistry, TerminalSize
from .terminal.tmux_bridge import TmuxBridge
from .terminal.workspace import Workspace


logger = logging.getLogger(__name__)


class TerminalServerConfig(BaseModel):
    tmux_binary: str = "tmux"
    """The tmux executable; a bare name is looked up on `PATH`."""

    session_name_prefix: str = "ai-terminal-"
    """Prefix of generated session names (a short random ID is appended)."""

    socket_dir_prefix: str = "ai-tmux-sockets"
    """Prefix of the private temporary directory that holds the tmux control socket."""

    socket_name: str = "ai-tmux.sock"
    """File name of the tmux control socket."""

    socket_base_dir: Path | None = None
    """Where the socket directory is created. If None, the system temp directory is used."""

    default_read_wait_ms: int = Field(default=1000, ge=0)
    """How long to wait after sending keys before capturing, unless the caller says otherwise."""

    max_read_wait_ms: int = Field(default=30000, ge=0)
    """Upper bound on the post-send wait, whatever the caller asks for."""

    session_startup_delay_seconds: float = Field(default=0.1, ge=0)
    """How long to wait after creating a session before using it."""


class CaptureResult(BaseModel):
    session_name: str
    """The session the keys went to (generated if the caller did not name one)."""
    output: str
    """The captured pane contents, trailing whitespace removed."""


class TerminalServer:
    """
    Sends keys to and captures output from named tmux sessions.

    All sessions live on one private tmux server whose socket sits in a per-process temporary directory.
    There is no per-session locking: concurrent calls on the same session may interleave,
    so callers that need ordering must serialize their own calls.
    """

    def __init__(self, config: TerminalServerConfig = TerminalServerConfig()):
        self._config = config

        self._workspace = Workspace(
            socket_dir_prefix=config.socket_dir_prefix,
            socket_name=config.socket_name,
            base_dir=config.socket_base_dir,
        )
        self._bridge = TmuxBridge(
            workspace=self._workspace,
            tmux_binary=config.tmux_binary,
            session_startup_delay_seconds=config.session_startup_delay_seconds,
        )
        self._registry = SessionRegistry(
            workspace=self._workspace,
            bridge=self._bridge,
            session_name_prefix=config.session_name_prefix,
        )

    @property
    def config(self) -> TerminalServerConfig:
        return self._config

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def send_keys_and_capture(
        self,
        session_name: str | None = None,
        keys: str = "",
        read_wait_ms: float | None = None,
        send_enter: bool = False,
        key_delay_ms: float | None = None,
        terminal_size: TerminalSize | None = None,
    ) -> CaptureResult:
        """
        Sends keys to a session and captures its screen.

        If `keys` is empty and `send_enter` is False, nothing is sent and the current screen is captured as is.

        :param session_name: The session to use; see `SessionRegistry.resolve_session`.
        :param keys: The keys to send, in key notation (see `parse_keys`).
        :param read_wait_ms: How long to wait after sending before capturing; capped at `max_read_wait_ms`.
        :param send_enter: Whether to press Enter after the keys.
        :param key_delay_ms: Delay between individual key presses.
        :param terminal_size: The size of the session, if it has to be created.
        """

        resolved_name = await self._registry.resolve_session(session_name, terminal_size)

        if keys or send_enter:
            if keys:
                await self._bridge.send_keys(resolved_name, parse_keys(keys), key_delay_ms=key_delay_ms)

            if send_enter:
                await self._bridge.send_keys(resolved_name, [ENTER])

            if read_wait_ms is None:
                read_wait_ms = self._config.default_read_wait_ms

            wait_ms = max(0, min(read_wait_ms, self._config.max_read_wait_ms))
            await asyncio.sleep(wait_ms / 1000)

        output = await self._bridge.capture_pane(resolved_name)

        return CaptureResult(session_name=resolved_name, output=output)

    async def close_session(self, session_name: str | None):
        """
        Kills a session.

        Unlike `send_keys_and_capture`, the session must be named explicitly.

        :raises SessionNameRequiredError: If `session_name` is empty; nothing is run in that case.
        :raises WorkspaceUninitializedError: If no session was ever resolved in this workspace.
        """

        if not session_name:
            raise SessionNameRequiredError()

        await self._bridge.kill_session(session_name)

        self._registry.forget(session_name)

    async def validate(self) -> bool:
        """Whether tmux is installed and runnable."""
        return await self._bridge.validate()

    async def version(self) -> str:
        return await self._bridge.version()

    async def cleanup(self):
        """Kills the tmux server, removes the socket directory and forgets all sessions.

        Safe to call any number of times, including before anything was initialized.
        Never raises.
        """

        if self._workspace.is_ready:
            try:
                await self._bridge.kill_server()
            except TerminalBridgeError as e:
                logger.debug(f'Ignoring error while killing tmux server: {e}')

        await self._workspace.destroy()
        self._registry.clear()
