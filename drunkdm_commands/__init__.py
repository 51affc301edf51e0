"""
Drunk DM Command System
=======================

Slash-commands for the Drunk DM dice roller, shared by the terminal
loop and the web interface.

    ┌──────────────┐     ┌──────────────┐     ┌─────────────────────┐
    │  User input  │────►│  Command     │────►│  DrunkDM            │
    │  (CLI / web) │     │  Dispatcher  │     │  append roll line   │
    └──────────────┘     └──────┬───────┘     │  to current note    │
                                │             └─────────────────────┘
                           ┌────▼────┐
                           │ Command │──► shown to the user
                           │ Result  │
                           └─────────┘

Module Structure
----------------
    drunkdm_commands/
    ├── __init__.py        Builds dispatchers.
    ├── dispatcher.py      CommandDispatcher, Command ABC, CommandResult.
    ├── dice.py            Dice parser, evaluator and the /roll command.
    ├── random_source.py   Injected random sources (system and scripted).
    ├── prompt.py          UserPrompt capability and the terminal prompt.
    └── notes.py           /file and /files.

The dice engine (parse_dice, roll_dice, the random sources) has no
dependencies beyond the standard library and never touches notes,
settings or the terminal.

Usage
-----
    from drunkdm_commands import dispatcher

    result = dispatcher.dispatch("/roll 2d6+1")
    if result is not None:
        print(result.error if result.is_error else result.summary)

An application that owns settings and a note store builds its own
dispatcher with build_dispatcher(host=...) to get /file and /files too.
"""

from typing import Callable, Optional

from drunkdm_commands.dispatcher import Command, CommandDispatcher, CommandResult
from drunkdm_commands.dice import (
    DiceCommand,
    DiceLimits,
    DiceTerm,
    Expression,
    KeepRule,
    ParseError,
    RollOutcome,
    RollResult,
    parse_dice,
    roll_dice,
)
from drunkdm_commands.notes import FileCommand, FilesCommand
from drunkdm_commands.prompt import PROMPT_LABEL, TerminalPrompt, UserPrompt
from drunkdm_commands.random_source import (
    ExhaustedError,
    RandomSource,
    RangeError,
    ScriptedRandomSource,
    SystemRandomSource,
    seeded_factory,
)


def build_dispatcher(
    host=None,
    random_factory: Callable[[], RandomSource] = SystemRandomSource,
    limits: DiceLimits = DiceLimits(),
    prompt: Optional[UserPrompt] = None,
) -> CommandDispatcher:
    """Dispatcher with /roll, plus /file and /files when a host is given."""
    d = CommandDispatcher()
    d.register(DiceCommand(random_factory=random_factory, limits=limits, prompt=prompt))
    if host is not None:
        d.register(FileCommand(host))
        d.register(FilesCommand(host))
    return d


# Default dispatcher: /roll only, OS-seeded dice, no prompt
dispatcher = build_dispatcher()

__all__ = [
    'dispatcher', 'build_dispatcher',
    'Command', 'CommandDispatcher', 'CommandResult',
    'DiceCommand', 'DiceLimits', 'DiceTerm', 'Expression', 'KeepRule',
    'ParseError', 'RollOutcome', 'RollResult', 'parse_dice', 'roll_dice',
    'FileCommand', 'FilesCommand',
    'PROMPT_LABEL', 'TerminalPrompt', 'UserPrompt',
    'ExhaustedError', 'RandomSource', 'RangeError',
    'ScriptedRandomSource', 'SystemRandomSource', 'seeded_factory',
]
