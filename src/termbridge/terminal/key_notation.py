MODIFIER_PREFIXES = frozenset({'C', 'M'})
"""Modifier markers recognized in `<modifier>-<key>` combinations (Ctrl and Meta)."""

FUNCTION_KEYS = frozenset(f'F{n}' for n in range(1, 13))

NAMED_KEYS = (
    'Up',
    'Down',
    'Left',
    'Right',
    'Home',
    'End',
    'PageUp',
    'PageDown',
    'Escape',
    'Tab',
    'BSpace',
    'DC',
    'IC',
    'Enter',
)
"""tmux key names that may be embedded in a key string without delimiters."""

# Longest names first, so that a name is never shadowed by one of its prefixes.
_NAMED_KEYS_BY_LENGTH = sorted(NAMED_KEYS, key=len, reverse=True)

ENTER = 'Enter'


def _match_modifier(keys: str, i: int) -> str | None:
    if keys[i] in MODIFIER_PREFIXES and i + 2 < len(keys) and keys[i + 1] == '-':
        return keys[i:i + 3]
    return None


def _match_function_key(keys: str, i: int) -> str | None:
    if keys[i] != 'F':
        return None

    j = i + 1
    while j < len(keys) and '0' <= keys[j] <= '9':
        j += 1

    # The whole digit run is validated; "F13" is not "F1" followed by "3".
    candidate = keys[i:j]
    return candidate if candidate in FUNCTION_KEYS else None


def _match_named_key(keys: str, i: int) -> str | None:
    for name in _NAMED_KEYS_BY_LENGTH:
        if keys.startswith(name, i):
            return name
    return None


def parse_keys(keys: str) -> list[str]:
    """Splits a key string into the tokens that are sent to tmux one by one.

    Literal text and special key names can be mixed freely,
    e.g., `vi my_file.txtEscape` yields the characters of `vi my_file.txt` followed by `Escape`.

    :param keys: The key string.
    :return: The key tokens in order; each is either a single literal character or a tmux key name.
    """

    tokens: list[str] = []
    i = 0

    while i < len(keys):
        token = (
            _match_modifier(keys, i)
            or _match_function_key(keys, i)
            or _match_named_key(keys, i)
            or keys[i]
        )
        tokens.append(token)
        i += len(token)

    return tokens
