import io
import os

import pytest

from minish.builtins import ShellExit, ShellState
from minish.environment import Environment
from minish.executor import (
    CommandError,
    Executor,
    resolve_command,
    search_paths,
)
from minish.parser import Command, Redirection, RedirectKind


def make_script(directory, name, body, executable=True):
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755 if executable else 0o644)
    return path


@pytest.fixture
def bin_dir(tmp_path):
    directory = tmp_path / "bin"
    directory.mkdir()
    return directory


@pytest.fixture
def state(bin_dir, tmp_path):
    system_path = os.environ.get("PATH", "/usr/bin:/bin")
    env = Environment(
        {"PATH": f"{bin_dir}:{system_path}", "HOME": str(tmp_path)}
    )
    return ShellState(env=env)


def cmd(*args, redirections=()):
    return Command(list(args), list(redirections))


def run(state, commands, stdin=""):
    out = io.StringIO()
    err = io.StringIO()
    code = Executor(state, io.StringIO(stdin), out, err).execute(commands)
    return code, out.getvalue(), err.getvalue()


def test_search_paths_drops_empty_components():
    assert search_paths(Environment(["PATH=/a::/b"])) == ["/a", "/b"]


def test_search_paths_without_path():
    assert search_paths(Environment(["HOME=/h"])) == []


def test_resolve_finds_executable_in_path(tmp_path, bin_dir):
    empty = tmp_path / "empty"
    empty.mkdir()
    script = make_script(bin_dir, "tool", "exit 0")
    assert resolve_command("tool", [str(empty), str(bin_dir)]) == str(script)


def test_resolve_non_executable_in_path(bin_dir):
    make_script(bin_dir, "tool", "exit 0", executable=False)
    with pytest.raises(CommandError) as info:
        resolve_command("tool", [str(bin_dir)])
    assert info.value.exit_code == 126
    assert str(info.value) == "minishell: tool: command not found"


def test_resolve_missing_command(bin_dir):
    with pytest.raises(CommandError) as info:
        resolve_command("missing_tool", [str(bin_dir)])
    assert info.value.exit_code == 127


def test_resolve_directory_path(bin_dir):
    with pytest.raises(CommandError) as info:
        resolve_command(str(bin_dir) + "/", [])
    assert info.value.exit_code == 126
    assert info.value.reason == "is a directory"


def test_resolve_path_without_permission(bin_dir):
    script = make_script(bin_dir, "tool", "exit 0", executable=False)
    with pytest.raises(CommandError) as info:
        resolve_command(str(script), [])
    assert info.value.reason == "Permission denied"
    assert info.value.exit_code == 126


def test_resolve_explicit_path_is_returned(bin_dir):
    script = make_script(bin_dir, "tool", "exit 0")
    assert resolve_command(str(script), []) == str(script)


def test_resolve_empty_name():
    with pytest.raises(CommandError) as info:
        resolve_command("", ["/usr/bin"])
    assert info.value.exit_code == 127


def test_single_builtin_writes_to_stdout(state):
    code, out, err = run(state, [cmd("echo", "hello", "world")])
    assert (code, out, err) == (0, "hello world\n", "")


def test_single_builtin_output_redirect_truncates(state, tmp_path):
    target = tmp_path / "out.txt"
    target.write_text("old contents here")
    redirect = Redirection(RedirectKind.OUTPUT, str(target))
    code, out, _ = run(state, [cmd("echo", "new", redirections=[redirect])])
    assert code == 0
    assert out == ""
    assert target.read_text() == "new\n"


def test_single_builtin_append_redirect(state, tmp_path):
    target = tmp_path / "log.txt"
    redirect = Redirection(RedirectKind.APPEND, str(target))
    run(state, [cmd("echo", "one", redirections=[redirect])])
    run(state, [cmd("echo", "two", redirections=[redirect])])
    assert target.read_text() == "one\ntwo\n"


def test_last_output_redirect_wins(state, tmp_path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    redirects = [
        Redirection(RedirectKind.OUTPUT, str(first)),
        Redirection(RedirectKind.OUTPUT, str(second)),
    ]
    run(state, [cmd("echo", "hi", redirections=redirects)])
    assert first.read_text() == ""
    assert second.read_text() == "hi\n"


def test_missing_input_file_fails(state, tmp_path):
    redirect = Redirection(RedirectKind.INPUT, str(tmp_path / "nothing"))
    code, out, err = run(state, [cmd("echo", "x", redirections=[redirect])])
    assert code == 1
    assert out == ""
    assert err.startswith("minishell: input: ")


def test_redirection_without_command_keeps_exit_code(state, tmp_path):
    state.exit_code = 7
    target = tmp_path / "created"
    redirect = Redirection(RedirectKind.OUTPUT, str(target))
    code, _, _ = run(state, [cmd(redirections=[redirect])])
    assert code == 7
    assert target.read_text() == ""


def test_empty_command_list_returns_current_code(state):
    state.exit_code = 3
    assert run(state, [])[0] == 3


def test_external_command_receives_arguments(state, bin_dir):
    make_script(bin_dir, "show", "printf '%s|' \"$@\"")
    code, out, _ = run(state, [cmd("show", "a", "b")])
    assert code == 0
    assert out == "a|b|"


def test_external_exit_status(state, bin_dir):
    make_script(bin_dir, "fail", "exit 5")
    code, _, _ = run(state, [cmd("fail")])
    assert code == 5
    assert state.exit_code == 5


def test_command_not_found(state):
    code, _, err = run(state, [cmd("no_such_command_here")])
    assert code == 127
    assert err == "minishell: no_such_command_here: command not found\n"


def test_builtin_piped_into_program(state):
    code, out, _ = run(state, [cmd("echo", "piped"), cmd("cat")])
    assert (code, out) == (0, "piped\n")


def test_stdin_reaches_program(state):
    code, out, _ = run(state, [cmd("cat")], stdin="from stdin\n")
    assert out == "from stdin\n"
    assert code == 0


def test_heredoc_feeds_program(state):
    body = "line one\nline two\n"
    heredoc = Redirection(RedirectKind.HEREDOC, body)
    _, out, _ = run(state, [cmd("cat", redirections=[heredoc])])
    assert out == body


def test_export_in_pipeline_does_not_persist(state):
    code, _, _ = run(state, [cmd("export", "NEWVAR=1"), cmd("cat")])
    assert code == 0
    assert state.env.get("NEWVAR") is None


def test_cd_in_pipeline_keeps_directory(state, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    sub = tmp_path / "sub"
    sub.mkdir()
    before = os.getcwd()
    code, out, _ = run(state, [cmd("cd", "sub"), cmd("cat")])
    assert code == 0
    assert out == ""
    assert os.getcwd() == before


def test_single_cd_changes_directory(state, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    sub = tmp_path / "sub"
    sub.mkdir()
    code, _, _ = run(state, [cmd("cd", "sub")])
    assert code == 0
    assert os.path.samefile(os.getcwd(), sub)
    assert os.path.samefile(state.env.get("PWD"), sub)


def test_output_redirect_overrides_pipe(state, tmp_path):
    target = tmp_path / "f"
    redirect = Redirection(RedirectKind.OUTPUT, str(target))
    code, out, _ = run(state, [cmd("echo", "hi", redirections=[redirect]), cmd("cat")])
    assert code == 0
    assert out == ""
    assert target.read_text() == "hi\n"


def test_pipeline_status_is_last_stage(state):
    code, _, err = run(state, [cmd("echo", "a"), cmd("no_such_command_here")])
    assert code == 127
    assert "command not found" in err


def test_single_exit_raises(state):
    with pytest.raises(ShellExit) as info:
        run(state, [cmd("exit", "4")])
    assert info.value.status == 4