"""
Command Dispatcher
==================

Routes slash-command lines typed at the Drunk DM prompt to their
handlers.

    "/roll 2d6+3"
         |
    leading "/" -> command "roll", args "2d6+3"
         |
    registry lookup -> DiceCommand.execute("2d6+3") -> CommandResult
         |
    caller shows the summary and appends the roll to the current note

Lines without a leading "/" return None unless the caller names a
default command for plain text; the terminal loop passes default="roll"
so a bare "2d6+1" rolls. Unknown command names always return None.

Rules
-----
- Command names are case-insensitive.
- Only a "/" at the start of the line counts. "hit/miss" is plain text.
- Each command parses and validates its own arguments. The dispatcher
  only routes.
- Commands never raise to the caller. Bad input comes back as a
  CommandResult with `error` set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CommandResult:
    """Structured output from a command.

    Attributes
    ----------
    command : str
        Name of the command that produced this result, e.g. "roll".
    summary : str
        One-line text for the terminal or a notice.
    details : dict
        Structured data for richer front ends. Each command defines
        its own keys; /roll uses RollResult.to_dict().
    error : str or None
        Set when the command was recognized but could not run. The
        summary is ignored in that case.
    """
    command: str
    summary: str
    details: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class Command(ABC):
    """Base class for slash-commands.

    Subclasses provide `name`, `help_text` and `execute(args)`, and may
    override `aliases`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Primary command name (lowercase, no slash)."""
        ...

    @property
    def aliases(self) -> list[str]:
        return []

    @property
    @abstractmethod
    def help_text(self) -> str:
        """One-line usage for /help."""
        ...

    @abstractmethod
    def execute(self, args: str) -> CommandResult:
        """Run the command.

        `args` is everything after the command name, already stripped
        of leading whitespace ("" when there are none). Always returns
        a CommandResult.
        """
        ...


class CommandDispatcher:
    """Registry of commands keyed by name and alias.

    Register everything at startup; dispatch() only reads the registry.
    """

    def __init__(self):
        self._commands: dict[str, Command] = {}

    def register(self, command: Command) -> None:
        """Add a command under its name and aliases.

        Raises
        ------
        ValueError
            If the name or an alias is already taken.
        """
        for key in [command.name] + command.aliases:
            key = key.lower()
            if key in self._commands:
                raise ValueError(
                    f"Command name collision: '{key}' is already registered "
                    f"to '{self._commands[key].name}'"
                )
            self._commands[key] = command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name.lower())

    def dispatch(self, line: str, default: Optional[str] = None) -> Optional[CommandResult]:
        """Run `line` if it is a registered slash-command.

        Plain text goes to the `default` command when one is named, so
        the terminal can treat "2d6+1" as "/roll 2d6+1". Returns None
        for plain text without a default and for unknown command names.
        """
        stripped = line.strip()
        if not stripped.startswith('/'):
            if default is None or not stripped:
                return None
            return self._route(default, stripped)

        parts = stripped[1:].split(None, 1)
        if not parts:
            return None
        return self._route(parts[0], parts[1] if len(parts) > 1 else "")

    def _route(self, name: str, args: str) -> Optional[CommandResult]:
        command = self.get(name)
        if command is None:
            return None
        return command.execute(args)

    def list_commands(self) -> list[tuple[str, str]]:
        """(name, help_text) per command, aliases folded, sorted by name."""
        seen = {}
        for cmd in self._commands.values():
            seen.setdefault(cmd.name, cmd.help_text)
        return sorted(seen.items())
