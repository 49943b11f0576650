import asyncio
import os
import sys
import time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from termbridge.terminal.errors import CaptureError, SessionNameRequiredError, WorkspaceUninitializedError
from termbridge.terminal.session_registry import TerminalSize
from termbridge.terminal.workspace import WorkspaceState
from termbridge.terminal_server import TerminalServer, TerminalServerConfig


def _make_server(tmp_path, **overrides) -> TerminalServer:
    config = TerminalServerConfig(socket_base_dir=tmp_path, session_startup_delay_seconds=0, **overrides)
    return TerminalServer(config=config)


@pytest.mark.asyncio
async def test_send_keys_then_enter(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    result = await server.send_keys_and_capture('s', keys='pwd', read_wait_ms=0, send_enter=True)

    assert result.session_name == 's'
    assert result.output == 'pwd'
    sends = fake_tmux.commands('send-keys')
    # The keys and the Enter are separate calls
    assert [call[5:] for call in sends] == [('p', 'w', 'd'), ('Enter',)]


@pytest.mark.asyncio
async def test_special_keys_are_parsed(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    await server.send_keys_and_capture('s', keys='vi fEscape:q', read_wait_ms=0)

    (send,) = fake_tmux.commands('send-keys')
    assert send[5:] == ('v', 'i', ' ', 'f', 'Escape', ':', 'q')


@pytest.mark.asyncio
async def test_peek_sends_nothing_and_does_not_wait(tmp_path, fake_tmux):
    server = _make_server(tmp_path)
    await server.send_keys_and_capture('s', keys='ls', read_wait_ms=0, send_enter=True)

    start = time.monotonic()
    first = await server.send_keys_and_capture('s', read_wait_ms=5000)
    second = await server.send_keys_and_capture('s', read_wait_ms=5000)
    elapsed = time.monotonic() - start

    assert first.output == second.output == 'ls'
    assert len(fake_tmux.commands('send-keys')) == 2
    assert elapsed < 1


@pytest.mark.asyncio
async def test_enter_alone_is_sent(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    await server.send_keys_and_capture('s', send_enter=True, read_wait_ms=0)

    (send,) = fake_tmux.commands('send-keys')
    assert send[5:] == ('Enter',)


@pytest.mark.asyncio
async def test_read_wait_is_capped(tmp_path, fake_tmux):
    server = _make_server(tmp_path, max_read_wait_ms=50)

    start = time.monotonic()
    await server.send_keys_and_capture('s', keys='x', read_wait_ms=50000)
    elapsed = time.monotonic() - start

    assert 0.05 <= elapsed < 1


@pytest.mark.asyncio
async def test_read_wait_defaults_to_thirty_second_cap(tmp_path, fake_tmux, monkeypatch):
    sleeps: list[float] = []

    async def record_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr(asyncio, 'sleep', record_sleep)
    assert TerminalServerConfig().max_read_wait_ms == 30000
    server = _make_server(tmp_path)

    await server.send_keys_and_capture('s', keys='x', read_wait_ms=50000)
    await server.send_keys_and_capture('s', keys='x', read_wait_ms=-5)

    # The last two sleeps are the post-send waits; earlier ones come from session startup
    assert sleeps[-2:] == [30.0, 0.0]


@pytest.mark.asyncio
async def test_default_read_wait_is_used(tmp_path, fake_tmux):
    server = _make_server(tmp_path, default_read_wait_ms=100)

    start = time.monotonic()
    await server.send_keys_and_capture('s', keys='x')

    assert time.monotonic() - start >= 0.1


@pytest.mark.asyncio
async def test_same_name_reaches_same_session(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    await server.send_keys_and_capture('shared', keys='cd /tmp', send_enter=True, read_wait_ms=0)
    result = await server.send_keys_and_capture('shared', keys='pwd', send_enter=True, read_wait_ms=0)

    assert result.output == 'cd /tmp\npwd'
    assert len(fake_tmux.commands('new-session')) == 1


@pytest.mark.asyncio
async def test_omitted_name_reuses_previous_session(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    first = await server.send_keys_and_capture(keys='a', read_wait_ms=0)
    second = await server.send_keys_and_capture(keys='b', read_wait_ms=0)

    assert first.session_name.startswith('ai-terminal-')
    assert second.session_name == first.session_name
    assert second.output == 'ab'


@pytest.mark.asyncio
async def test_terminal_size_reaches_new_session(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    await server.send_keys_and_capture('s', terminal_size=TerminalSize(width=132, height=50))

    assert (fake_tmux.panes['s'].width, fake_tmux.panes['s'].height) == (132, 50)


@pytest.mark.asyncio
async def test_capture_failure_propagates(tmp_path, fake_tmux):
    server = _make_server(tmp_path)
    fake_tmux.fail_commands.add('capture-pane')

    with pytest.raises(CaptureError, match='capture-pane failed'):
        await server.send_keys_and_capture('s')


@pytest.mark.asyncio
@pytest.mark.parametrize('name', ['', None])
async def test_close_requires_name(tmp_path, fake_tmux, name):
    server = _make_server(tmp_path)

    with pytest.raises(SessionNameRequiredError, match='sessionName is required'):
        await server.close_session(name)
    assert fake_tmux.calls == []


@pytest.mark.asyncio
async def test_close_before_any_session(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    with pytest.raises(WorkspaceUninitializedError):
        await server.close_session('s')


@pytest.mark.asyncio
async def test_close_forgets_last_session(tmp_path, fake_tmux):
    server = _make_server(tmp_path)
    generated = (await server.send_keys_and_capture()).session_name

    await server.close_session(generated)

    assert generated not in fake_tmux.panes
    assert server.registry.last_session_name is None
    # A fresh name is generated next time instead of resurrecting the closed session
    assert (await server.send_keys_and_capture()).session_name != generated


@pytest.mark.asyncio
async def test_cleanup_twice_resets_everything(tmp_path, fake_tmux):
    server = _make_server(tmp_path)
    await server.send_keys_and_capture('a')
    await server.send_keys_and_capture('b')

    await server.cleanup()
    await server.cleanup()

    assert fake_tmux.panes == {}
    assert len(fake_tmux.commands('kill-server')) == 1
    assert server.workspace.state == WorkspaceState.UNINITIALIZED
    assert server.workspace.socket_dir is None
    assert server.registry.sessions == {}
    assert server.registry.last_session_name is None
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_cleanup_without_initialization(tmp_path, fake_tmux):
    server = _make_server(tmp_path)

    await server.cleanup()

    assert server.workspace.state == WorkspaceState.UNINITIALIZED
    assert fake_tmux.calls == []


@pytest.mark.asyncio
async def test_use_after_cleanup_starts_a_new_workspace(tmp_path, fake_tmux):
    server = _make_server(tmp_path)
    await server.send_keys_and_capture('a')
    old_socket = server.workspace.socket_path

    await server.cleanup()
    result = await server.send_keys_and_capture()

    assert server.workspace.socket_path != old_socket
    assert result.session_name.startswith('ai-terminal-')

    await server.cleanup()
