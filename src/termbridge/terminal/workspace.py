import asyncio
import logging
import shutil
import tempfile
import uuid
from enum import Enum
from pathlib import Path

import aiofiles.os

from .errors import WorkspaceCreationError, WorkspaceUninitializedError


logger = logging.getLogger(__name__)


class WorkspaceState(Enum):
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'


class Workspace:
    """
    The private directory + tmux control socket pair shared by every session of this process.

    The workspace is created lazily by `ensure_ready` and torn down by `destroy`,
    which puts it back in the uninitialized state; the next `ensure_ready` starts over with a fresh directory.
    """

    def __init__(
        self,
        socket_dir_prefix: str = "ai-tmux-sockets",
        socket_name: str = "ai-tmux.sock",
        base_dir: Path | None = None,
    ):
        """Creates a Workspace object.
        Notice that this method does not touch the filesystem.

        :param socket_dir_prefix: The prefix of the private socket directory name.
        :param socket_name: The file name of the tmux control socket inside the directory.
        :param base_dir: Where to create the socket directory; defaults to the system temp directory.
        """

        self._socket_dir_prefix = socket_dir_prefix
        self._socket_name = socket_name
        self._base_dir = base_dir

        self._state = WorkspaceState.UNINITIALIZED
        self._socket_dir: Path | None = None
        self._socket_path: Path | None = None

        # Shared by concurrent first accesses so that they all end up with the same directory
        self._init_task: asyncio.Task[Path] | None = None

    @property
    def state(self) -> WorkspaceState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == WorkspaceState.READY

    @property
    def socket_dir(self) -> Path | None:
        return self._socket_dir

    @property
    def socket_path(self) -> Path:
        if self._socket_path is None:
            raise WorkspaceUninitializedError("Socket path not initialized")
        return self._socket_path

    async def ensure_ready(self) -> Path:
        """Initializes the workspace if needed,
        returning the control socket path.

        Concurrent callers share a single initialization.
        If initialization fails, the next call tries again.
        """

        if self._state == WorkspaceState.READY:
            return self.socket_path

        if self._init_task is None:
            self._init_task = asyncio.create_task(self._initialize())

        init_task = self._init_task

        try:
            # A cancelled caller must not cancel the initialization other callers are waiting on
            return await asyncio.shield(init_task)
        except OSError as e:
            if self._init_task is init_task:
                self._init_task = None
            raise WorkspaceCreationError(f"Failed to create temporary directory: {e}") from e

    async def _initialize(self) -> Path:
        base_dir = self._base_dir or Path(tempfile.gettempdir())
        socket_dir = base_dir / f'{self._socket_dir_prefix}{uuid.uuid4().hex[:12]}'

        await aiofiles.os.mkdir(socket_dir, mode=0o700)

        self._socket_dir = socket_dir
        self._socket_path = socket_dir / self._socket_name
        self._state = WorkspaceState.READY

        logger.info(f'Terminal workspace initialized at {socket_dir}')

        return self._socket_path

    async def destroy(self):
        """Removes the socket directory and forgets the socket path.

        This method is idempotent and never raises on filesystem errors;
        the in-memory state is reset regardless.
        Killing the tmux server is the caller's job and must happen before this.
        """

        if self._init_task is not None and not self._init_task.done():
            await asyncio.wait([self._init_task])

        socket_dir = self._socket_dir

        self._socket_dir = None
        self._socket_path = None
        self._init_task = None
        self._state = WorkspaceState.UNINITIALIZED

        if socket_dir is None:
            return

        await asyncio.to_thread(shutil.rmtree, socket_dir, ignore_errors=True)

        if socket_dir.exists():
            logger.warning(f'Failed to remove terminal workspace {socket_dir}')
        else:
            logger.info(f'Terminal workspace {socket_dir} removed')
