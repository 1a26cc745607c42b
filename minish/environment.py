"""Environment variables and the sorted ``declare -x`` export listing."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping

EXPORT_PREFIX = "declare -x "


class VariableKind(enum.Enum):
    """How an ``export`` argument is to be treated."""

    INVALID = 0
    PLAIN = 1
    APPEND = 2


def is_name_char(c: str) -> bool:
    """True for a character allowed inside a variable name."""
    return c == "_" or (c.isascii() and c.isalnum())


def is_name_start(c: str) -> bool:
    """True for a character allowed at the start of a variable name."""
    return c == "_" or (c.isascii() and c.isalpha())


def matches_name(entry: str, name: str) -> bool:
    """Tell whether ``entry`` (``NAME`` or ``NAME=value``) is the variable ``name``.

    ``name`` may itself carry ``=value``; then ``entry`` must hold a value too.
    A ``NAME+=value`` form never matches.
    """
    key, eq, _ = entry.partition("=")
    wanted, wanted_eq, _ = name.partition("=")
    if wanted_eq and wanted.endswith("+"):
        return False
    if key != wanted:
        return False
    return bool(eq) or not wanted_eq


def count_equal(s: str) -> int:
    """Return the position just past the first ``=``, or 0 when there is none."""
    pos = s.find("=")
    return pos + 1 if pos >= 0 else 0


def check_variable(s: str) -> VariableKind:
    """Classify an ``export`` argument as invalid, a plain assignment or an append."""
    if not is_name_start(s[:1]):
        return VariableKind.INVALID
    name, _, _ = s.partition("=")
    for pos, c in enumerate(name):
        if c == "+" and s[pos + 1 : pos + 2] == "=":
            return VariableKind.APPEND
        if not is_name_char(c):
            return VariableKind.INVALID
    return VariableKind.PLAIN


def lookup(entries: Iterable[str], name: str) -> str | None:
    """Return the value of ``name`` among ``NAME=value`` entries, or None."""
    for entry in entries:
        key, eq, value = entry.partition("=")
        if eq and key == name:
            return value
    return None


def export_style(entry: str) -> str:
    """Render ``NAME`` or ``NAME=value`` the way ``export`` lists it."""
    name, eq, value = entry.partition("=")
    if not eq:
        return f"{EXPORT_PREFIX}{name}"
    return f'{EXPORT_PREFIX}{name}="{value}"'


def _export_parts(line: str) -> tuple[str, str | None]:
    body = line[len(EXPORT_PREFIX) :]
    name, eq, rest = body.partition("=")
    if not eq:
        return name, None
    return name, rest[1:-1]


def _insert_before_last(items: list[str], item: str) -> None:
    items.insert(max(len(items) - 1, 0), item)


class Environment:
    """The shell's variables plus the listing that ``export`` prints."""

    def __init__(self, entries: Mapping[str, str] | Iterable[str] | None = None) -> None:
        if entries is None:
            entries = ()
        elif isinstance(entries, Mapping):
            entries = [f"{key}={value}" for key, value in entries.items()]
        self.variables: list[str] = list(entries)
        self.exported: list[str] = [export_style(e) for e in sorted(self.variables)]

    def _variable_index(self, name: str) -> int | None:
        return next(
            (pos for pos, entry in enumerate(self.variables) if matches_name(entry, name)),
            None,
        )

    def _export_index(self, name: str) -> int | None:
        return next(
            (pos for pos, line in enumerate(self.exported) if _export_parts(line)[0] == name),
            None,
        )

    def get(self, name: str) -> str | None:
        """Return the value of ``name`` or None when it is not set."""
        return lookup(self.variables, name)

    def set(self, name: str, value: str) -> None:
        """Set ``name`` in place, or add it at the end."""
        entry = f"{name}={value}"
        pos = self._variable_index(name)
        if pos is None:
            self.variables.append(entry)
        else:
            self.variables[pos] = entry

    def assign(self, arg: str) -> None:
        """Apply an ``export`` argument: ``NAME``, ``NAME=value`` or ``NAME+=value``."""
        kind = check_variable(arg)
        if kind is VariableKind.INVALID:
            raise ValueError(f"not a valid identifier: {arg}")
        if kind is VariableKind.APPEND:
            self.append(arg)
            return
        name, eq, _ = arg.partition("=")
        if eq:
            pos = self._variable_index(name)
            if pos is None:
                _insert_before_last(self.variables, arg)
            else:
                self.variables[pos] = arg
        exp_pos = self._export_index(name)
        if exp_pos is None:
            _insert_before_last(self.exported, export_style(arg))
        elif eq:
            self.exported[exp_pos] = export_style(arg)

    def append(self, arg: str) -> None:
        """Apply a ``NAME+=value`` argument, appending to any existing value."""
        if check_variable(arg) is not VariableKind.APPEND:
            raise ValueError(f"not an append assignment: {arg}")
        head, _, value = arg.partition("=")
        name = head[:-1]
        pos = self._variable_index(name)
        if pos is None:
            _insert_before_last(self.variables, f"{name}={value}")
        else:
            self.variables[pos] += value
        exp_pos = self._export_index(name)
        if exp_pos is None:
            _insert_before_last(self.exported, export_style(f"{name}={value}"))
        else:
            old = _export_parts(self.exported[exp_pos])[1] or ""
            self.exported[exp_pos] = export_style(f"{name}={old}{value}")

    def remove(self, name: str) -> None:
        """Remove ``name`` from the variables and the export listing."""
        if "=" in name or check_variable(name) is not VariableKind.PLAIN:
            raise ValueError(f"not a valid identifier: {name}")
        pos = self._variable_index(name)
        if pos is not None:
            del self.variables[pos]
        exp_pos = self._export_index(name)
        if exp_pos is not None:
            del self.exported[exp_pos]

    def as_dict(self) -> dict[str, str]:
        """Return the variables as a mapping, for starting programs."""
        return {key: value for key, _, value in (e.partition("=") for e in self.variables)}