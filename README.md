# minish

A small interactive command shell. It shows a `Minishell$ ` prompt, checks
each line for syntax errors, expands variables and runs the result, either
itself (for builtins) or by starting programs found on `PATH`.

## Features

- Pipelines: `ls -l | grep py | wc -l`
- Redirections: `< file`, `> file` (truncate), `>> file` (append), and
  heredocs with `<< END`. Output files are created with mode 0644.
- Single and double quotes. A line with an unclosed quote asks for more
  input at a `dquote> ` prompt until the quote is closed.
- Expansion of `$NAME` and `$?` (the last exit status), outside quotes,
  inside double quotes and in heredoc bodies. Quoting the heredoc
  delimiter (`<< "END"` or `<< 'END'`) turns expansion off for that body.
- Builtins: `cd` (with `~`, `~/path` and `-`), `echo` (with `-n`), `env`,
  `export` (including `NAME+=value`, and a sorted `declare -x` listing when
  given no arguments), `unset`, `pwd` and `exit`.
- `cd` keeps `PWD` and `OLDPWD` up to date.
- Syntax errors such as `| ls`, `ls || wc` or `cat <` are reported and set
  the status to 258.
- A command that cannot be found ends with status 127; one that exists but
  cannot be run (a directory, no execute permission) ends with 126.

## Installation

```
pip install .
```

## Usage

Start the shell:

```
minish
```

Then type commands:

```
Minishell$ export GREETING=hello
Minishell$ echo "$GREETING, world" > out.txt
Minishell$ cat < out.txt | tr a-z A-Z
HELLO, WORLD
Minishell$ cat << END
heredoc> $GREETING from a heredoc
heredoc> END
hello from a heredoc
Minishell$ exit
exit
```

End of input (Ctrl-D) prints `exit` and leaves the shell with status 0.
Ctrl-C at the prompt starts a fresh prompt; Ctrl-\ is ignored.

`exit N` ends the shell with `N` modulo 256. A non-numeric argument is
reported and gives 255, and so does an argument that reads as 0. With more
than one argument `exit` reports "too many arguments" and the shell keeps
running with status 1.

A builtin that is the only command on its line runs inside the shell, so
`cd`, `export` and `unset` change the shell's own state. A builtin that is
part of a pipeline runs on a copy of that state, so its changes do not last.

## Using it from Python

`minish.shell.Shell` runs lines without a terminal, which is handy for
scripts and tests:

```python
import io
from minish.shell import Shell

out = io.StringIO()
shell = Shell(environ={"PATH": "/usr/bin:/bin"}, stdout=out)
shell.run_line("export NAME=world")
shell.run_line("echo hello $NAME")
print(out.getvalue())  # hello world
print(shell.exit_code)  # 0
```

`run_line` returns the line's exit status and raises
`minish.builtins.ShellExit` (with a `status` attribute) when the line runs
`exit`. `Shell.loop()` keeps prompting through the `read_line` callable it
was given until end of input or `exit`, and returns the final status.

The parser can be used on its own:

```python
from minish.environment import Environment
from minish.parser import parse_line

env = Environment({"DIR": "/tmp"})
commands = parse_line("grep x < $DIR/in.txt | sort > out.txt", env)
for command in commands:
    print(command.args, [(r.kind.value, r.target) for r in command.redirections])
# ['grep', 'x'] [('<', '/tmp/in.txt')]
# ['sort'] [('>', 'out.txt')]
```

`parse_line(line, env, exit_code, read_line)` raises
`minish.syntax.ShellSyntaxError` for a malformed line. `read_line` is called
with a prompt string whenever more input is needed (unclosed quotes,
heredoc bodies) and returns a line, or `None` at end of input.

## What it does not do

minish is a small shell, not a full POSIX one. It has no wildcard
(glob) expansion, no `;`, `&&` or `||` lists, no background jobs or job
control, no subshells or command substitution, no backslash escapes, no
redirection of file descriptors other than standard input and output, and
no scripting constructs such as `if` or loops. It reads commands only
interactively or through `Shell.run_line` / `Shell.loop`; it does not take a
script file or a `-c` argument.

## Running the tests

```
pip install .[test]
pytest
```