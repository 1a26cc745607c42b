"""Expansion of ``$NAME`` and ``$?`` in command lines and here-documents."""

from __future__ import annotations

from itertools import takewhile
from typing import Optional, Protocol

from minish.environment import is_name_char, is_name_start
from minish.syntax import is_blank


class VariableSource(Protocol):
    """Anything that can look up a variable by name."""

    def get(self, name: str) -> Optional[str]: ...


def _name_at(text: str, start: int) -> str:
    return "".join(takewhile(is_name_char, text[start:]))


def _require_dollar(line: str, pos: int) -> None:
    if line[pos : pos + 1] != "$":
        raise ValueError(f"no '$' at position {pos}")


def expand_dollar(
    line: str, pos: int, env: VariableSource, exit_code: int = 0
) -> tuple[str | None, int]:
    """Expand the ``$`` at ``pos`` outside quotes.

    Returns the replacement text (None when nothing is to be inserted) and
    the position just past what was consumed.
    """
    _require_dollar(line, pos)
    nxt = line[pos + 1 : pos + 2]
    if nxt in ('"', "'"):
        return None, pos + 1
    if is_blank(nxt):
        return "$", pos + 1
    if nxt == "?":
        return str(exit_code), pos + 2
    if nxt == "$":
        return env.get(nxt), pos + 1
    if not is_name_start(nxt):
        return env.get(nxt), pos + 2
    name = _name_at(line, pos + 1)
    return env.get(name), pos + 1 + len(name)


def expand_dollar_quoted(
    line: str, pos: int, env: VariableSource, exit_code: int = 0
) -> tuple[str | None, int]:
    """Expand the ``$`` at ``pos`` inside double quotes.

    Returns the text to append (None for an unset variable) and the
    position of the next character still to be read.
    """
    _require_dollar(line, pos)
    nxt = line[pos + 1 : pos + 2]
    if nxt == "?":
        return str(exit_code), pos + 2
    if is_blank(nxt) or nxt == '"':
        return "$", pos + 1
    if nxt == "$":
        return env.get(nxt), pos + 1
    if not is_name_start(nxt):
        return env.get(nxt), pos + 2
    name = _name_at(line, pos + 1)
    return env.get(name), pos + 1 + len(name)


def _heredoc_dollar(
    text: str, pos: int, env: VariableSource, exit_code: int
) -> tuple[str | None, int]:
    nxt = text[pos + 1 : pos + 2]
    if nxt in ('"', "'"):
        return None, pos + 1
    if is_blank(nxt):
        return "$", pos + 1
    if nxt == "?":
        return str(exit_code), pos + 2
    name = _name_at(text, pos + 1)
    if not name:
        return None, pos + 1
    return env.get(name), pos + 1 + len(name)


def expand_heredoc(text: str, env: VariableSource, exit_code: int = 0) -> str:
    """Expand variables in here-document text.

    The character right after an expansion is always copied as it is,
    even when it is another ``$``.
    """
    out: list[str] = []
    pos = 0
    end = len(text)
    while pos < end:
        if text[pos] == "$":
            value, pos = _heredoc_dollar(text, pos, env, exit_code)
            if value:
                out.append(value)
        if pos < end:
            out.append(text[pos])
            pos += 1
    return "".join(out)