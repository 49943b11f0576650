import asyncio
import logging
import shlex
from dataclasses import dataclass

from .errors import (
    CaptureError,
    KeyDeliveryError,
    SessionCreationError,
    SessionTerminationError,
    TerminalBridgeError,
    ValidationUnavailableError,
)
from .workspace import Workspace


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _escape_key(token: str) -> str:
    # tmux treats a trailing `;` in an argument as a command separator; `\;` is a literal semicolon
    return '\\;' if token == ';' else token


class TmuxBridge:
    """
    Issues tmux commands against the workspace's private server.

    Every operation is a separate `tmux -S <socket> ...` process;
    non-zero exits are translated into the matching `TmuxCommandError` subclass.
    """

    def __init__(
        self,
        workspace: Workspace,
        tmux_binary: str = "tmux",
        session_startup_delay_seconds: float = 0.1,
    ):
        """Creates a TmuxBridge object.

        :param workspace: The workspace whose control socket scopes every command.
        :param tmux_binary: The tmux executable to run.
        :param session_startup_delay_seconds: How long to wait after creating a session
        for its shell to come up before keys are sent to it.
        """

        self._workspace = workspace
        self._tmux_binary = tmux_binary
        self._session_startup_delay_seconds = session_startup_delay_seconds

    async def _exec(self, *args: str) -> CommandResult:
        cmd = [self._tmux_binary, *args]
        logger.debug(f'Running {shlex.join(cmd)}')

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ValidationUnavailableError(f"Failed to run {self._tmux_binary}: {e}") from e

        stdout, stderr = await process.communicate()

        return CommandResult(
            args=cmd,
            returncode=process.returncode,
            stdout=stdout.decode(errors='replace'),
            stderr=stderr.decode(errors='replace'),
        )

    async def _run(self, *args: str) -> CommandResult:
        """Runs a tmux command scoped to the workspace's control socket."""
        return await self._exec('-S', str(self._workspace.socket_path), *args)

    async def has_session(self, session_name: str) -> bool:
        """Checks whether a session exists on the workspace's tmux server.

        Any failure (including tmux not running at all) counts as "does not exist".
        """
        try:
            result = await self._run('has-session', '-t', session_name)
        except TerminalBridgeError as e:
            logger.debug(f'has-session for {session_name} failed: {e}')
            return False

        return result.ok

    async def new_session(self, session_name: str, width: int | None = None, height: int | None = None):
        args = ['new-session', '-d', '-s', session_name]
        if width is not None and height is not None:
            args += ['-x', str(width), '-y', str(height)]

        result = await self._run(*args)
        if not result.ok:
            raise SessionCreationError(
                f"Failed to create tmux session {session_name}: {result.stderr.strip()}",
                stderr=result.stderr,
            )

        logger.info(f'Created tmux session {session_name}')

        await asyncio.sleep(self._session_startup_delay_seconds)

    async def send_keys(self, session_name: str, tokens: list[str], key_delay_ms: float | None = None):
        """Sends key tokens to a session.

        :param session_name: The target session.
        :param tokens: Key tokens as produced by `parse_keys`.
        :param key_delay_ms: If positive, tokens are sent one at a time with this delay after each;
        otherwise they are sent in a single batch.
        """

        if not tokens:
            return

        if key_delay_ms and key_delay_ms > 0:
            for token in tokens:
                result = await self._run('send-keys', '-t', session_name, _escape_key(token))
                if not result.ok:
                    raise KeyDeliveryError(
                        f"Failed to send key '{token}' to session {session_name}: {result.stderr.strip()}",
                        stderr=result.stderr,
                    )
                await asyncio.sleep(key_delay_ms / 1000)
            return

        result = await self._run('send-keys', '-t', session_name, *(_escape_key(token) for token in tokens))
        if not result.ok:
            raise KeyDeliveryError(
                f"Failed to send keys to session {session_name}: {result.stderr.strip()}",
                stderr=result.stderr,
            )

    async def capture_pane(self, session_name: str) -> str:
        result = await self._run('capture-pane', '-p', '-t', session_name)
        if not result.ok:
            raise CaptureError(
                f"Failed to capture screen for session {session_name}: {result.stderr.strip()}",
                stderr=result.stderr,
            )
        return result.stdout.rstrip()

    async def kill_session(self, session_name: str):
        result = await self._run('kill-session', '-t', session_name)
        if not result.ok:
            raise SessionTerminationError(
                f"Failed to terminate session {session_name}: {result.stderr.strip()}",
                stderr=result.stderr,
            )

        logger.info(f'Killed tmux session {session_name}')

    async def kill_server(self):
        """Kills the workspace's tmux server.

        Errors are ignored; the server is usually already gone when this is called.
        """
        try:
            result = await self._run('kill-server')
        except TerminalBridgeError as e:
            logger.debug(f'kill-server failed: {e}')
            return

        if not result.ok:
            logger.debug(f'kill-server exited with {result.returncode}: {result.stderr.strip()}')

    async def version(self) -> str:
        """Returns the tmux version string, e.g. `tmux 3.4`.

        :raises ValidationUnavailableError: If tmux is missing or unusable.
        """
        result = await self._exec('-V')
        if not result.ok:
            raise ValidationUnavailableError(
                f"{self._tmux_binary} -V exited with {result.returncode}: {result.stderr.strip()}"
            )
        return result.stdout.strip()

    async def validate(self) -> bool:
        try:
            await self.version()
        except ValidationUnavailableError as e:
            logger.warning(f'tmux is not available: {e}')
            return False
        return True
