"""Running parsed commands: built-ins in place, programs through pipes."""

from __future__ import annotations

import copy
import os
import stat
import subprocess
import sys
import tempfile
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol, TextIO

from minish.builtins import Builtins, ShellExit, ShellState, is_builtin
from minish.expansion import VariableSource
from minish.parser import Command, RedirectKind

_OUTPUT_FLAGS = {
    RedirectKind.OUTPUT: os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
    RedirectKind.APPEND: os.O_WRONLY | os.O_CREAT | os.O_APPEND,
}
_FILE_MODE = 0o644


class CommandError(Exception):
    """A command that cannot be started, with the status it ends with."""

    def __init__(self, name: str, reason: str, exit_code: int) -> None:
        self.name = name
        self.reason = reason
        self.exit_code = exit_code
        super().__init__(f"minishell: {name}: {reason}")


class RedirectionError(Exception):
    """A redirection whose file cannot be opened."""

    exit_code = 1

    def __init__(self, direction: str, error: OSError) -> None:
        self.direction = direction
        self.reason = error.strerror or str(error)
        super().__init__(f"minishell: {direction}: {self.reason}")


def search_paths(env: VariableSource) -> list[str]:
    """Return the directories named by PATH, skipping empty components."""
    value = env.get("PATH")
    if value is None:
        return []
    return [directory for directory in value.split(":") if directory]


def resolve_command(name: str, paths: Sequence[str]) -> str:
    """Return the file to run for ``name``, or raise CommandError."""
    if name and "/" not in name:
        for directory in paths:
            candidate = os.path.join(directory, name)
            if os.path.exists(candidate):
                if os.access(candidate, os.X_OK):
                    return candidate
                raise CommandError(name, "command not found", 126)
        raise CommandError(name, "command not found", 127)
    try:
        info = os.stat(name)
    except OSError:
        info = None
    if info is not None:
        if stat.S_ISDIR(info.st_mode):
            raise CommandError(name, "is a directory", 126)
        if not info.st_mode & stat.S_IXUSR:
            raise CommandError(name, "Permission denied", 126)
    if os.path.exists(name):
        if os.access(name, os.X_OK):
            return name
        raise CommandError(name, "command not found", 126)
    raise CommandError(name, "command not found", 127)


def _fileno(stream: object) -> int | None:
    try:
        return stream.fileno()  # type: ignore[attr-defined]
    except (AttributeError, OSError, ValueError):
        return None


def _open_fd(path: str, flags: int, direction: str) -> int:
    try:
        return os.open(path, flags, _FILE_MODE)
    except OSError as error:
        raise RedirectionError(direction, error) from error


def _heredoc_fd(body: str) -> int:
    try:
        with tempfile.TemporaryFile() as handle:
            handle.write(body.encode())
            handle.flush()
            handle.seek(0)
            return os.dup(handle.fileno())
    except OSError as error:
        raise RedirectionError("input", error) from error


@dataclass
class _Streams:
    """File descriptors opened for one command's redirections."""

    stdin: int | None = None
    stdout: int | None = None

    def replace_input(self, fd: int) -> None:
        if self.stdin is not None:
            os.close(self.stdin)
        self.stdin = fd

    def replace_output(self, fd: int) -> None:
        if self.stdout is not None:
            os.close(self.stdout)
        self.stdout = fd

    def close(self) -> None:
        for fd in (self.stdin, self.stdout):
            if fd is not None:
                os.close(fd)
        self.stdin = self.stdout = None


def _open_redirections(command: Command, *, heredocs: bool = True) -> _Streams:
    streams = _Streams()
    try:
        for redirection in command.redirections:
            kind = redirection.kind
            if kind is RedirectKind.HEREDOC:
                if heredocs:
                    streams.replace_input(_heredoc_fd(redirection.target))
            elif kind is RedirectKind.INPUT:
                streams.replace_input(_open_fd(redirection.target, os.O_RDONLY, "input"))
            else:
                streams.replace_output(
                    _open_fd(redirection.target, _OUTPUT_FLAGS[kind], "output")
                )
    except BaseException:
        streams.close()
        raise
    return streams


class _Stage(Protocol):
    def wait(self) -> int: ...


@dataclass
class _Finished:
    status: int

    def wait(self) -> int:
        return self.status


@dataclass
class _Process:
    process: subprocess.Popen

    def wait(self) -> int:
        code = self.process.wait()
        return 128 - code if code < 0 else code


@dataclass
class _Thread:
    thread: threading.Thread
    result: list[int] = field(default_factory=lambda: [0])

    def wait(self) -> int:
        self.thread.join()
        return self.result[0]


class Executor:
    """Runs the commands of one parsed line against a ShellState."""

    def __init__(
        self,
        state: ShellState,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self.state = state
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr

    def _report(self, error: Exception) -> None:
        self.stderr.write(f"{error}\n")

    def execute(self, commands: Sequence[Command]) -> int:
        """Run a pipeline and return its exit status.

        A lone built-in runs in this process and may raise ShellExit.
        """
        commands = list(commands)
        if not commands:
            return self.state.exit_code
        first = commands[0]
        if not first.args:
            self._redirect_only(first)
        elif len(commands) == 1 and is_builtin(first.args[0]):
            self._run_builtin_in_place(first)
        else:
            self.state.exit_code = self._run_pipeline(commands)
        return self.state.exit_code

    def _redirect_only(self, command: Command) -> None:
        try:
            streams = _open_redirections(command, heredocs=False)
        except RedirectionError as error:
            self._report(error)
            self.state.exit_code = error.exit_code
            return
        streams.close()

    def _run_builtin_in_place(self, command: Command) -> None:
        try:
            streams = _open_redirections(command)
        except RedirectionError as error:
            self._report(error)
            self.state.exit_code = error.exit_code
            return
        try:
            if streams.stdout is None:
                Builtins(self.state, self.stdout, self.stderr).run(command.args)
            else:
                with os.fdopen(os.dup(streams.stdout), "w", encoding="utf-8") as out:
                    Builtins(self.state, out, self.stderr).run(command.args)
        finally:
            streams.close()

    def _source(self, stream: object, owned: list[int], bridges: list[threading.Thread]) -> int:
        fd = _fileno(stream)
        if fd is not None:
            return fd
        try:
            text = stream.read()  # type: ignore[attr-defined]
        except (AttributeError, OSError, ValueError):
            text = ""
        data = text.encode() if isinstance(text, str) else bytes(text or b"")
        read_fd, write_fd = os.pipe()
        owned.append(read_fd)

        def feed() -> None:
            try:
                with os.fdopen(write_fd, "wb") as pipe:
                    pipe.write(data)
            except BrokenPipeError:
                pass

        thread = threading.Thread(target=feed, daemon=True)
        thread.start()
        bridges.append(thread)
        return read_fd

    def _sink(self, stream: TextIO, owned: list[int], bridges: list[threading.Thread]) -> int:
        fd = _fileno(stream)
        if fd is not None:
            stream.flush()
            return fd
        read_fd, write_fd = os.pipe()
        owned.append(write_fd)

        def drain() -> None:
            with os.fdopen(read_fd, "rb") as pipe:
                data = pipe.read()
            stream.write(data.decode(errors="replace"))

        thread = threading.Thread(target=drain, daemon=True)
        thread.start()
        bridges.append(thread)
        return write_fd

    def _run_pipeline(self, commands: list[Command]) -> int:
        cwd = os.getcwd()
        owned: list[int] = []
        bridges: list[threading.Thread] = []
        stages: list[_Stage] = []
        try:
            stdin_fd = self._source(self.stdin, owned, bridges)
            stdout_fd = self._sink(self.stdout, owned, bridges)
            stderr_fd = self._sink(self.stderr, owned, bridges)
            links = [os.pipe() for _ in commands[1:]]
            for read_fd, write_fd in links:
                owned.extend((read_fd, write_fd))
            env_vars = self.state.env.as_dict()
            paths = search_paths(self.state.env)
            last = len(commands) - 1
            for index, command in enumerate(commands):
                default_in = stdin_fd if index == 0 else links[index - 1][0]
                default_out = stdout_fd if index == last else links[index][1]
                stages.append(
                    self._start_stage(
                        command, default_in, default_out, stderr_fd, cwd, env_vars, paths
                    )
                )
        finally:
            for fd in owned:
                os.close(fd)
        statuses = [stage.wait() for stage in stages]
        for thread in bridges:
            thread.join()
        if os.getcwd() != cwd:
            try:
                os.chdir(cwd)
            except OSError:
                pass
        return statuses[-1]

    def _start_stage(
        self,
        command: Command,
        default_in: int,
        default_out: int,
        stderr_fd: int,
        cwd: str,
        env_vars: dict[str, str],
        paths: list[str],
    ) -> _Stage:
        try:
            streams = _open_redirections(command)
        except RedirectionError as error:
            self._report(error)
            return _Finished(error.exit_code)
        try:
            stdin_fd = streams.stdin if streams.stdin is not None else default_in
            stdout_fd = streams.stdout if streams.stdout is not None else default_out
            if not command.args:
                return _Finished(0)
            name = command.args[0]
            if is_builtin(name):
                return self._start_builtin(command.args, stdout_fd)
            try:
                path = resolve_command(name, paths)
            except CommandError as error:
                self._report(error)
                return _Finished(error.exit_code)
            try:
                process = subprocess.Popen(
                    list(command.args),
                    executable=path,
                    stdin=stdin_fd,
                    stdout=stdout_fd,
                    stderr=stderr_fd,
                    env=env_vars,
                    cwd=cwd,
                )
            except OSError as error:
                failure = CommandError(name, error.strerror or str(error), 126)
                self._report(failure)
                return _Finished(failure.exit_code)
            return _Process(process)
        finally:
            streams.close()

    def _start_builtin(self, args: Sequence[str], stdout_fd: int) -> _Stage:
        out = os.fdopen(os.dup(stdout_fd), "w", encoding="utf-8")
        state = copy.deepcopy(self.state)
        stage = _Thread(threading.Thread(daemon=True))

        def run() -> None:
            try:
                with out:
                    try:
                        Builtins(state, out, self.stderr).run(args)
                    except ShellExit as done:
                        stage.result[0] = done.status
            except BrokenPipeError:
                pass

        stage.thread = threading.Thread(target=run, daemon=True)
        stage.thread.start()
        return stage