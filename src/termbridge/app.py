from contextlib import asynccontextmanager
import logging

from mcp.server.fastmcp import FastMCP

from .terminal.errors import SessionNameRequiredError
from .terminal.session_registry import TerminalSize
from .terminal_server import TerminalServer, TerminalServerConfig


logger = logging.getLogger(__name__)


terminal_server: TerminalServer
config: TerminalServerConfig = TerminalServerConfig()


def set_config(server_config: TerminalServerConfig):
    global config
    config = server_config


@asynccontextmanager
async def lifespan(app: FastMCP):
    global terminal_server

    terminal_server = TerminalServer(config=config)

    if not await terminal_server.validate():
        logger.error(f'`{config.tmux_binary}` is not available; terminal tools will fail until it is installed')

    try:
        yield
    finally:
        await terminal_server.cleanup()


mcp = FastMCP(name="termbridge", lifespan=lifespan)


@mcp.tool()
async def terminal_execute(
    session_name: str | None = None,
    keys: str = "",
    send_enter: bool = False,
    read_wait: float | None = None,
    key_delay: float | None = None,
    terminal_size: TerminalSize | None = None,
) -> str:
    """Provides an interactive terminal session for executing commands or capturing output.

    Key features:
      - Sends keys to a tmux session and captures the resulting output.
      - If `keys` is empty and `send_enter` is false, captures the current terminal output without sending anything.
      - Creates a new session if `session_name` does not exist yet.
      - Multiple sessions are independent; each keeps its own state (environment variables, working directory).

    When sending keys:
      - Special keys and regular characters can be combined, e.g. 'vi my_file.txtEscape'
        opens a file in vi and then sends the Escape key.
      - Special keys are detected and sent as tmux key names:
        * Control/Meta keys: C-c, C-d, C-u, C-z, M-x, etc.
        * Function keys: F1-F12
        * Navigation: Up, Down, Left, Right, Home, End, PageUp, PageDown
        * Other: Escape, Tab, BSpace (backspace), DC (delete), IC (insert), Enter
      - To execute a command, set `send_enter` (recommended) or include an 'Enter' key in `keys`.

    :param session_name: Terminal session name to use; created if it doesn't exist, reused if it does.
    If omitted, the last used session is reused.
    :param keys: The keystrokes to send to the terminal. If empty, only captures the current output.
    :param send_enter: Whether to press Enter after the keys.
    :param read_wait: Time to wait for output before capturing, in milliseconds. Default is 1000, max is 30000.
    :param key_delay: Delay in milliseconds between individual key presses; useful for slow applications.
    :param terminal_size: Terminal size (columns and rows) for new sessions.
    """

    try:
        result = await terminal_server.send_keys_and_capture(
            session_name=session_name,
            keys=keys,
            read_wait_ms=read_wait,
            send_enter=send_enter,
            key_delay_ms=key_delay,
            terminal_size=terminal_size,
        )
    except Exception as e:
        return f"""Error executing terminal command: {e}"""

    result_message = "Terminal output captured successfully" if keys == "" else "Keys sent successfully"

    return f"""{result_message}
Session Name: {result.session_name}
Terminal Output:
```
{result.output}
```"""


@mcp.tool()
async def terminal_close(session_name: str = "") -> str:
    """Closes a terminal session and frees up associated resources.

    :param session_name: Terminal session name to terminate.
    """

    try:
        await terminal_server.close_session(session_name=session_name)
        return f"""Terminal session {session_name} closed successfully"""
    except SessionNameRequiredError as e:
        return f"""Error: {e}"""
    except Exception as e:
        return f"""Error closing terminal session: {e}"""
