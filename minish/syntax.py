"""Syntax checks on a command line before it is parsed."""

from __future__ import annotations

_WHITESPACE = " \t\n\f\v\r"


class ShellSyntaxError(Exception):
    """A command line with a misplaced pipe or redirection."""

    exit_code = 258

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"minishell: syntax error near unexpected token `{token}'")


def is_blank(c: str) -> bool:
    """True for whitespace or for the end of the line (an empty string)."""
    return c == "" or c in _WHITESPACE


def _at(s: str, i: int) -> str:
    return s[i] if i < len(s) else ""


def _skip_spaces(s: str, i: int) -> int:
    while i < len(s) and s[i] in " \t":
        i += 1
    return i


def _skip_quoted(s: str, i: int, quote: str) -> int:
    if _at(s, i) != quote:
        return i
    end = s.find(quote, i + 1)
    return len(s) if end < 0 else end + 1


def skip_quotes(s: str, i: int) -> int:
    """Skip a double-quoted and then a single-quoted run starting at ``i``."""
    i = _skip_quoted(s, i, '"')
    return _skip_quoted(s, i, "'")


def check_pipe(s: str) -> str | None:
    """Return ``|`` if the line has a leading or doubled pipe, else None."""
    i = _skip_spaces(s, 0)
    if _at(s, i) == "|":
        return "|"
    while i < len(s):
        if s[i] == "|":
            i = _skip_spaces(s, i + 1)
            if _at(s, i) == "|":
                return "|"
        else:
            i = skip_quotes(s, i)
            if i < len(s):
                i += 1
    return None


def _check_direction(s: str, symbol: str) -> str | None:
    i = _skip_spaces(s, 0)
    while i < len(s):
        if s[i] == symbol:
            i += 1
            if _at(s, i) == symbol:
                i += 1
            i = _skip_spaces(s, i)
            nxt = _at(s, i)
            if nxt == "":
                return "newline"
            if nxt in ("<", ">", "|"):
                return "<"
        else:
            i = skip_quotes(s, i)
            if i < len(s):
                i += 1
    return None


def check_input_direction(s: str) -> str | None:
    """Return the offending token after a ``<`` or ``<<``, else None."""
    return _check_direction(s, "<")


def check_output_direction(s: str) -> str | None:
    """Return the offending token after a ``>`` or ``>>``, else None."""
    return _check_direction(s, ">")


def check_syntax(line: str) -> None:
    """Raise ShellSyntaxError if the line cannot be parsed."""
    for check in (check_pipe, check_input_direction, check_output_direction):
        token = check(line)
        if token is not None:
            raise ShellSyntaxError(token)