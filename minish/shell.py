"""The interactive loop: prompt, read a line, parse it, run it."""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Callable, Mapping, Sequence
from types import FrameType
from typing import Optional, TextIO

from minish.builtins import ShellExit, ShellState
from minish.environment import Environment
from minish.executor import Executor
from minish.parser import parse_line
from minish.syntax import ShellSyntaxError

PROMPT = "Minishell$ "
INTERRUPTED_STATUS = 130

ReadLine = Callable[[str], Optional[str]]


def _read_input(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def _configure_terminal(stream: TextIO) -> None:
    """Keep echo, canonical mode and signals on, but stop echoing ``^C``."""
    try:
        import termios
    except ImportError:
        return
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        return
    if not os.isatty(fd):
        return
    try:
        attrs = termios.tcgetattr(fd)
        attrs[3] |= termios.ECHO | termios.ICANON | termios.ISIG
        attrs[3] &= ~getattr(termios, "ECHOCTL", 0)
        termios.tcsetattr(fd, termios.TCSANOW, attrs)
    except termios.error:
        return


class Shell:
    """Reads command lines and runs them, keeping state between lines."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        read_line: ReadLine | None = None,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        if environ is None:
            environ = dict(os.environ)
        self.state = ShellState(env=Environment(environ))
        self.read_line = read_line or _read_input
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self._running = False

    @property
    def exit_code(self) -> int:
        """The status of the last command line."""
        return self.state.exit_code

    def run_line(self, line: str) -> int:
        """Parse and run one command line and return its exit status.

        Raises ShellExit when the line runs ``exit``.
        """
        try:
            commands = parse_line(
                line, self.state.env, self.state.exit_code, self.read_line
            )
        except ShellSyntaxError as error:
            self.stderr.write(f"{error}\n")
            self.state.exit_code = error.exit_code
            return self.state.exit_code
        executor = Executor(self.state, self.stdin, self.stdout, self.stderr)
        self._running = True
        try:
            self.state.exit_code = executor.execute(commands)
        finally:
            self._running = False
        return self.state.exit_code

    def loop(self) -> int:
        """Prompt until end of input or ``exit``; return the shell's status."""
        while True:
            try:
                line = self.read_line(PROMPT)
            except KeyboardInterrupt:
                continue
            if line is None:
                self.stdout.write("exit\n")
                self.stdout.flush()
                return 0
            try:
                self.run_line(line)
            except ShellExit as done:
                self.stdout.flush()
                return done.status
            except KeyboardInterrupt:
                self.stdout.write("\n")
                self.state.exit_code = INTERRUPTED_STATUS

    def _on_interrupt(self, signum: int, frame: FrameType | None) -> None:
        try:
            os.write(1, b"\n")
        except OSError:
            pass
        if not self._running:
            raise KeyboardInterrupt

    def install_signal_handlers(self) -> None:
        """Handle SIGINT at the prompt and ignore SIGQUIT."""
        signal.signal(signal.SIGINT, self._on_interrupt)
        if hasattr(signal, "SIGQUIT"):
            signal.signal(signal.SIGQUIT, signal.SIG_IGN)


def main(argv: Sequence[str] | None = None) -> int:
    """Start an interactive shell and return its exit status."""
    if sys.stdin.isatty():
        try:
            import readline  # noqa: F401  enables line editing and history
        except ImportError:
            pass
    shell = Shell()
    shell.install_signal_handlers()
    _configure_terminal(sys.stdin)
    return shell.loop()


if __name__ == "__main__":
    sys.exit(main())