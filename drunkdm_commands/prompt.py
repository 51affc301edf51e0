"""
User prompt capability.

The dice prompt is the one piece of UI the roller needs: show a label,
get back a line of text or nothing. Front ends supply an implementation;
commands and the application only see UserPrompt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

PROMPT_LABEL = "Enter Dice Roll (e.g., 1d6, 2d10)"


class UserPrompt(ABC):
    """Asks the user for one line of text."""

    @abstractmethod
    def ask(self, label: str) -> Optional[str]:
        """Return the entered text, or None if the user cancelled."""
        ...


class TerminalPrompt(UserPrompt):
    """Prompt on the terminal. EOF and Ctrl-C count as cancel."""

    def __init__(self, input_func: Callable[[str], str] = input):
        self.input_func = input_func

    def ask(self, label: str) -> Optional[str]:
        try:
            answer = self.input_func(f"{label}: ")
        except (EOFError, KeyboardInterrupt):
            return None
        answer = answer.strip()
        return answer or None
