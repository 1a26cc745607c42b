import pytest

from minish.syntax import (
    ShellSyntaxError,
    check_input_direction,
    check_output_direction,
    check_pipe,
    check_syntax,
    is_blank,
    skip_quotes,
)


def test_is_blank():
    assert all(is_blank(c) for c in " \t\n\f\v\r")
    assert is_blank("")
    assert not is_blank("a")
    assert not is_blank("|")


def test_skip_quotes_double():
    s = '"ab"c'
    assert s[skip_quotes(s, 0)] == "c"


def test_skip_quotes_double_then_single():
    s = "\"a\"'b'x"
    assert s[skip_quotes(s, 0)] == "x"


def test_skip_quotes_unquoted_position_unchanged():
    assert skip_quotes("abc", 1) == 1


def test_skip_quotes_unterminated_runs_to_end():
    s = '"abc'
    assert skip_quotes(s, 0) == len(s)


@pytest.mark.parametrize("line", ["| ls", "   |ls", "ls || wc", "ls | | wc"])
def test_check_pipe_errors(line):
    assert check_pipe(line) == "|"


@pytest.mark.parametrize("line", ["ls | wc", "echo '||'", 'echo "a | | b"', "ls |", ""])
def test_check_pipe_ok(line):
    assert check_pipe(line) is None


@pytest.mark.parametrize(
    "line,token",
    [
        ("cat <", "newline"),
        ("cat < ", "newline"),
        ("cat <<", "newline"),
        ("cat <<< f", "<"),
        ("cat < | wc", "<"),
        ("cat < >f", "<"),
    ],
)
def test_check_input_direction_errors(line, token):
    assert check_input_direction(line) == token


@pytest.mark.parametrize("line", ["cat < f", "cat << EOF", "echo '<'", 'echo "<"'])
def test_check_input_direction_ok(line):
    assert check_input_direction(line) is None


@pytest.mark.parametrize(
    "line,token",
    [
        ("ls >", "newline"),
        ("ls >>", "newline"),
        ("ls >>> f", "<"),
        ("ls > | wc", "<"),
        ("ls > <f", "<"),
    ],
)
def test_check_output_direction_errors(line, token):
    assert check_output_direction(line) == token


@pytest.mark.parametrize("line", ["ls > f", "ls >> f", "echo '>'", 'echo ">>"'])
def test_check_output_direction_ok(line):
    assert check_output_direction(line) is None


def test_check_syntax_pipe_error_message():
    with pytest.raises(ShellSyntaxError) as info:
        check_syntax("| ls")
    assert str(info.value) == "minishell: syntax error near unexpected token `|'"
    assert info.value.exit_code == 258


def test_check_syntax_newline_error():
    with pytest.raises(ShellSyntaxError) as info:
        check_syntax("cat <")
    assert info.value.token == "newline"
    assert str(info.value) == "minishell: syntax error near unexpected token `newline'"


def test_check_syntax_pipe_checked_first():
    with pytest.raises(ShellSyntaxError) as info:
        check_syntax("| ls >")
    assert info.value.token == "|"


def test_check_syntax_output_error():
    with pytest.raises(ShellSyntaxError) as info:
        check_syntax("ls >> | wc")
    assert info.value.token == "<"


@pytest.mark.parametrize("line", ["ls -l | wc -l", "cat < in > out", "echo '| <'"])
def test_valid_lines_pass_every_check(line):
    results = [check_pipe(line), check_input_direction(line), check_output_direction(line)]
    assert results == [None, None, None]