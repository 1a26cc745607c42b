"""The commands the shell runs itself: cd, exit, export, unset, pwd, env, echo."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from itertools import takewhile
from typing import TextIO

from minish.environment import Environment, VariableKind, check_variable

BUILTIN_NAMES = frozenset({"cd", "exit", "export", "unset", "pwd", "env", "echo"})

_DIGITS = frozenset("0123456789")
_WHITESPACE = " \t\n\v\f\r"
_LLONG_MAX = 2**63 - 1
_LLONG_MIN = -(2**63)


class ShellExit(Exception):
    """Raised by ``exit`` when the shell is to end with ``status``."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"exit {status}")


@dataclass
class ShellState:
    """What the shell carries from one command line to the next."""

    env: Environment = field(default_factory=Environment)
    exit_code: int = 0


def is_builtin(name: str) -> bool:
    """True when ``name`` is one of the commands the shell runs itself."""
    return name in BUILTIN_NAMES


def parse_long(text: str) -> int:
    """Read an optionally signed decimal number, stopping at the first non-digit.

    Leading whitespace is skipped; text without digits reads as 0.
    """
    rest = text.lstrip(_WHITESPACE)
    sign = -1 if rest[:1] == "-" else 1
    if rest[:1] in ("+", "-"):
        rest = rest[1:]
    digits = "".join(takewhile(lambda c: c in _DIGITS, rest))
    return sign * int(digits or "0")


def exit_status_from(text: str) -> int:
    """Return the status ``exit text`` ends the shell with.

    Raises ValueError when ``text`` is not a number in range. A value that
    comes out as zero gives 255, as a failed conversion does.
    """
    num = parse_long(text)
    if num >= _LLONG_MAX or num <= _LLONG_MIN:
        raise ValueError(f"numeric argument required: {text}")
    rest = text.lstrip(" ")
    if rest[:1] in ("+", "-"):
        rest = rest[1:]
    if any(c not in _DIGITS for c in rest):
        raise ValueError(f"numeric argument required: {text}")
    as_int = (num + 2**31) % 2**32 - 2**31
    if as_int == 0:
        return 255
    return as_int & 0xFF


def is_echo_n_flag(s: str) -> bool:
    """True for ``-`` followed only by ``n`` characters (``-`` alone counts)."""
    return s[:1] == "-" and all(c == "n" for c in s[1:])


class Builtins:
    """Runs built-in commands against a shared ShellState."""

    def __init__(
        self,
        state: ShellState,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.state = state
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self._handlers: dict[str, Callable[[Sequence[str]], int]] = {
            "cd": self.cd,
            "exit": self.exit,
            "export": self.export,
            "unset": self.unset,
            "pwd": self.pwd,
            "env": self.env,
            "echo": self.echo,
        }

    def _error(self, message: str) -> None:
        self.stderr.write(f"minishell: {message}\n")

    def _finish(self, code: int) -> int:
        self.state.exit_code = code
        return code

    def _identifier_error(self, command: str, arg: str) -> None:
        self._error(f"{command}: `{arg}': not a valid identifier")

    def run(self, args: Sequence[str]) -> int:
        """Run the built-in named by ``args[0]`` and return its exit status."""
        if not args or not is_builtin(args[0]):
            raise ValueError(f"not a builtin: {args[0] if args else ''}")
        return self._handlers[args[0]](args)

    # cd

    def _cd_error(self, path: str) -> int:
        self._error(f"cd: {path}: No such file or directory")
        return self._finish(1)

    def _change_dir(self, path: str) -> bool:
        try:
            os.chdir(path)
        except OSError:
            self._cd_error(path)
            return False
        return True

    def _update_pwd(self) -> None:
        env = self.state.env
        old = env.get("PWD")
        if old is not None:
            env.set("OLDPWD", old)
        try:
            cwd = os.getcwd()
        except OSError:
            return
        env.set("PWD", cwd)

    def cd(self, args: Sequence[str]) -> int:
        """Change the working directory."""
        self.state.exit_code = 0
        env = self.state.env
        home = env.get("HOME")
        target = args[1] if len(args) > 1 else None
        if target is None or target == "~":
            if home is None:
                self._error("cd: HOME not set")
                return self._finish(1)
            if not self._change_dir(home):
                return self.state.exit_code
        elif target.startswith("-"):
            return self._cd_oldpwd()
        elif target.startswith("~/"):
            if home is None:
                self._error("cd: HOME not set")
                return self._finish(1)
            self._change_dir(home + target[1:])
            return self.state.exit_code
        elif os.path.exists(target) or target in ("..", "."):
            if not self._change_dir(target):
                return self.state.exit_code
        else:
            return self._cd_error(target)
        self._update_pwd()
        return self._finish(0)

    def _cd_oldpwd(self) -> int:
        oldpwd = self.state.env.get("OLDPWD")
        if oldpwd is None:
            self._error("cd: OLDPWD not set")
            return self._finish(1)
        if not os.path.exists(oldpwd):
            return self._cd_error(oldpwd)
        self.stdout.write(f"{oldpwd}\n")
        self._change_dir(oldpwd)
        return self.state.exit_code

    # exit

    def exit(self, args: Sequence[str]) -> int:
        """End the shell, raising ShellExit; with too many arguments return 1."""
        status = 0
        if len(args) > 1:
            try:
                status = exit_status_from(args[1])
            except ValueError:
                self._error("exit: numeric argument required")
                status = 255
        if len(args) >= 3:
            self._error("exit: too many arguments")
            return self._finish(1)
        self.stdout.write("exit\n")
        raise ShellExit(status)

    # export / unset

    def export(self, args: Sequence[str]) -> int:
        """Set variables, or list them in ``declare -x`` form with no arguments."""
        if len(args) < 2:
            for line in self.state.env.exported:
                self.stdout.write(f"{line}\n")
            return self._finish(0)
        code = 0
        for arg in args[1:]:
            if check_variable(arg) is VariableKind.INVALID:
                self._identifier_error("export", arg)
                code = 1
                continue
            self.state.env.assign(arg)
        return self._finish(code)

    def unset(self, args: Sequence[str]) -> int:
        """Remove variables from the environment and the export listing."""
        code = 0
        for arg in args[1:]:
            if "=" in arg or check_variable(arg) is VariableKind.INVALID:
                self._identifier_error("unset", arg)
                code = 1
                continue
            try:
                self.state.env.remove(arg)
            except ValueError:
                self._identifier_error("unset", arg)
                code = 1
        return self._finish(code)

    # pwd / env / echo

    def pwd(self, args: Sequence[str]) -> int:
        """Print the working directory."""
        self.stdout.write(f"{os.getcwd()}\n")
        return self._finish(0)

    def env(self, args: Sequence[str]) -> int:
        """Print every ``NAME=value`` variable."""
        for entry in self.state.env.variables:
            self.stdout.write(f"{entry}\n")
        return self._finish(0)

    def echo(self, args: Sequence[str]) -> int:
        """Print the arguments separated by spaces; ``-n`` drops the newline."""
        words = list(args[1:])
        flags = list(takewhile(is_echo_n_flag, words))
        self.stdout.write(" ".join(words[len(flags) :]))
        if not flags:
            self.stdout.write("\n")
        return self._finish(0)