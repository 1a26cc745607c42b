"""Splitting a command line into commands, arguments and redirections."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field

from minish.expansion import (
    VariableSource,
    expand_dollar,
    expand_dollar_quoted,
    expand_heredoc,
)
from minish.syntax import check_syntax, is_blank

ReadLine = Callable[[str], "str | None"]

_WHITESPACE = " \t\n\f\v\r"
CONTINUATION_PROMPT = "dquote> "
HEREDOC_PROMPT = "heredoc> "


class RedirectKind(enum.Enum):
    """The four redirection operators."""

    INPUT = "<"
    HEREDOC = "<<"
    OUTPUT = ">"
    APPEND = ">>"

    @property
    def is_input(self) -> bool:
        return self in (RedirectKind.INPUT, RedirectKind.HEREDOC)


@dataclass
class Redirection:
    """One redirection; for a here-document ``target`` holds its body."""

    kind: RedirectKind
    target: str


@dataclass
class Command:
    """One stage of a pipeline."""

    args: list[str] = field(default_factory=list)
    redirections: list[Redirection] = field(default_factory=list)

    @property
    def inputs(self) -> list[Redirection]:
        return [r for r in self.redirections if r.kind.is_input]

    @property
    def outputs(self) -> list[Redirection]:
        return [r for r in self.redirections if not r.kind.is_input]


def _join(left: str | None, right: str | None) -> str | None:
    if left is None and right is None:
        return None
    return (left or "") + (right or "")


class Parser:
    """Parses one command line into a list of commands."""

    def __init__(
        self,
        line: str,
        env: VariableSource,
        exit_code: int = 0,
        read_line: ReadLine | None = None,
    ) -> None:
        self.line = line
        self.env = env
        self.exit_code = exit_code
        self.read_line = read_line
        self._pos = 0
        self._expand_heredoc = True

    def _read(self, prompt: str) -> str | None:
        """Read one more line of input, or None when there is no input."""
        if self.read_line is None:
            return None
        return self.read_line(prompt)

    def _char(self, offset: int = 0) -> str:
        idx = self._pos + offset
        return self.line[idx] if 0 <= idx < len(self.line) else ""

    def _advance(self) -> None:
        self._pos = min(self._pos + 1, len(self.line))

    def parse(self) -> list[Command]:
        """Check the syntax, then return the pipeline's commands."""
        check_syntax(self.line)
        commands = [Command()]
        current = commands[0]
        word: str | None = None
        while self._pos < len(self.line):
            c = self._char()
            if c == "|":
                if word is not None:
                    current.args.append(word)
                word = None
                current = Command()
                commands.append(current)
                self._pos += 1
            elif c == " " and self._char(1) != " ":
                if word is not None:
                    current.args.append(word)
                word = None
            word = self._step(current, word)
        if word is not None:
            current.args.append(word)
        return commands

    def _step(self, current: Command, word: str | None) -> str | None:
        c = self._char()
        if c in ("<", ">"):
            self._redirect(current, c)
        elif c == "'":
            word = _join(word, self._literal_quote("'", "'"))
        elif c == '"':
            word = _join(word, self._double_quote())
        elif c == "$":
            value, self._pos = expand_dollar(self.line, self._pos, self.env, self.exit_code)
            return _join(word, value)
        elif c not in (" ", "\t"):
            word = (word or "") + c
        if self._pos < len(self.line):
            self._pos += 1
        return word

    def _continue_quote(self, text: str, quote: str) -> str:
        while True:
            extra = self._read(CONTINUATION_PROMPT)
            if extra is None:
                return text
            head, found, _ = ("\n" + extra).partition(quote)
            text += head
            if found:
                return text

    def _literal_quote(self, quote: str, continuation_quote: str) -> str:
        self._pos += 1
        if self._char() == quote:
            return ""
        end = self.line.find(quote, self._pos)
        if end < 0:
            text = self.line[self._pos :]
            self._pos = len(self.line)
            return self._continue_quote(text, continuation_quote)
        text = self.line[self._pos : end]
        self._pos = end
        return text

    def _double_quote(self) -> str | None:
        self._pos += 1
        if self._char() == '"':
            return ""
        text: str | None = None
        while self._pos < len(self.line) and self.line[self._pos] != '"':
            if self.line[self._pos] == "$":
                value, self._pos = expand_dollar_quoted(
                    self.line, self._pos, self.env, self.exit_code
                )
                text = _join(text, value)
            else:
                text = (text or "") + self.line[self._pos]
                self._pos += 1
        if self._pos >= len(self.line):
            text = self._continue_quote(text or "", '"')
        return text

    def _redirect(self, current: Command, symbol: str) -> None:
        self._pos += 1
        double = self._char() == symbol
        if double:
            self._pos += 1
        while self._char() and self._char() in _WHITESPACE:
            self._pos += 1
        target = self._read_target()
        if symbol == "<":
            kind = RedirectKind.HEREDOC if double else RedirectKind.INPUT
        else:
            kind = RedirectKind.APPEND if double else RedirectKind.OUTPUT
        if kind is RedirectKind.HEREDOC:
            target = self._read_heredoc(target or "")
        if self._char() in ("", "|"):
            self._pos -= 1
        if target is not None:
            current.redirections.append(Redirection(kind, target))

    def _read_target(self) -> str | None:
        target: str | None = None
        while not is_blank(self._char()) and self._char() != "|":
            c = self._char()
            if c == '"':
                target = (target or "") + self._literal_quote('"', "'")
                self._expand_heredoc = False
                self._advance()
            elif c == "'":
                target = (target or "") + self._literal_quote("'", "'")
                self._expand_heredoc = False
                self._advance()
            c = self._char()
            if not is_blank(c) and c not in ('"', "|", "'"):
                target = (target or "") + c
                self._pos += 1
        return target

    def _read_heredoc(self, delimiter: str) -> str:
        body = ""
        first = True
        while True:
            text = self._read(HEREDOC_PROMPT)
            if text is None or text == delimiter:
                break
            if not first:
                body += "\n"
            first = False
            body += text
            if self._expand_heredoc:
                body = expand_heredoc(body, self.env, self.exit_code)
        self._expand_heredoc = True
        return body + "\n"


def parse_line(
    line: str,
    env: VariableSource,
    exit_code: int = 0,
    read_line: ReadLine | None = None,
) -> list[Command]:
    """Parse ``line`` into the commands of its pipeline."""
    return Parser(line, env, exit_code, read_line).parse()