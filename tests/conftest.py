import os
import sys
from dataclasses import dataclass, field

import pytest

# Add the src directory to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from termbridge.terminal.tmux_bridge import CommandResult, TmuxBridge


@dataclass
class FakePane:
    width: int | None = None
    height: int | None = None
    keys: list[str] = field(default_factory=list)

    @property
    def screen(self) -> str:
        return ''.join('\n' if key == 'Enter' else key for key in self.keys)


class FakeTmux:
    """Stands in for the tmux binary; records every invocation."""

    def __init__(self):
        self.calls: list[tuple[str, ...]] = []
        self.panes: dict[str, FakePane] = {}
        self.fail_commands: set[str] = set()

    def commands(self, name: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if name in call]

    def _result(self, args, returncode=0, stdout='', stderr='') -> CommandResult:
        return CommandResult(args=['tmux', *args], returncode=returncode, stdout=stdout, stderr=stderr)

    async def __call__(self, *args: str) -> CommandResult:
        self.calls.append(args)

        if args == ('-V',):
            return self._result(args, stdout='tmux 3.4\n')

        assert args[0] == '-S', f'unscoped tmux command: {args}'
        command, rest = args[2], list(args[3:])

        if command in self.fail_commands:
            return self._result(args, returncode=1, stderr=f'{command} failed\n')

        if command == 'kill-server':
            if not self.panes:
                return self._result(args, returncode=1, stderr='no server running\n')
            self.panes.clear()
            return self._result(args)

        if command == 'new-session':
            name = rest[rest.index('-s') + 1]
            if name in self.panes:
                return self._result(args, returncode=1, stderr=f'duplicate session: {name}\n')
            pane = FakePane()
            if '-x' in rest:
                pane.width = int(rest[rest.index('-x') + 1])
                pane.height = int(rest[rest.index('-y') + 1])
            self.panes[name] = pane
            return self._result(args)

        name = rest[rest.index('-t') + 1]
        if name not in self.panes:
            return self._result(args, returncode=1, stderr=f"can't find session: {name}\n")

        if command == 'has-session':
            return self._result(args)
        if command == 'send-keys':
            self.panes[name].keys.extend(rest[rest.index('-t') + 2:])
            return self._result(args)
        if command == 'capture-pane':
            return self._result(args, stdout=self.panes[name].screen + '\n   \n\n')
        if command == 'kill-session':
            del self.panes[name]
            return self._result(args)

        raise AssertionError(f'unexpected tmux command: {args}')


@pytest.fixture
def fake_tmux(monkeypatch) -> FakeTmux:
    tmux = FakeTmux()
    monkeypatch.setattr(TmuxBridge, '_exec', tmux)
    return tmux
