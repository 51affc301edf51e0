"""
Dice Command (/roll)
====================

Parses and rolls tabletop dice expressions, and exposes them as the
/roll slash-command.

Dice Notation Grammar
---------------------
    Expression := Term (('+' | '-') Term)*
    Term       := [N] 'd' S [KeepRule] [('+' | '-') M]
    KeepRule   := ('kh' | 'kl' | 'k') [K]

    N   Number of dice (default 1, max 100)
    S   Sides per die (min 2, max 1000)
    K   Dice to keep, 1 <= K <= N (default 1). 'k' is short for 'kh'.
    M   Flat modifier for the term (max 10000)

Letters are case-insensitive and whitespace between tokens is ignored,
so "2d6+1", "2D6 + 1" and " 2 d 6+1 " all mean the same thing.

A sign followed by dice ("+1d4", "-d6") starts a new term. A sign
followed by a bare number is the current term's modifier, and each
term takes at most one.

Examples
--------
    /roll d20          ->  1d20: [14] = 14
    /roll 2d6+3        ->  2d6: [4, 5] (+3) = 12
    /roll 4d6kh3       ->  4d6kh3: [3, 5, 1, 6] kept [6, 5, 3] = 14
    /roll 2d20kl1      ->  disadvantage
    /roll 1d20+5+1d4   ->  two terms: d20 with +5, then a d4

Design
------
    DiceTerm / Expression   Parsed "what to roll". Frozen, built once.
    RollOutcome             One term's dice, in draw order, plus the kept subset.
    RollResult              Every outcome and the grand total. Frozen.
    parse_dice()            text -> Expression, or ParseError
    roll_dice()             Expression + RandomSource -> RollResult
    DiceCommand             The /roll handler

parse_dice() and roll_dice() are pure apart from the draws taken from
the RandomSource. Neither logs nor prints; the command layer and the
application decide what the user sees.

Sign Semantics
--------------
A term's modifier belongs to the term. The kept dice and the modifier
are summed first and the term sign applies to that subtotal, so
1d20-1d4+1 is d20 - (d4 + 1).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

from drunkdm_commands.dispatcher import Command, CommandResult
from drunkdm_commands.prompt import PROMPT_LABEL, UserPrompt
from drunkdm_commands.random_source import RandomSource, SystemRandomSource


# ─── Limits ─────────────────────────────────────────────────────────

MAX_DICE = 100
MIN_SIDES = 2
MAX_SIDES = 1000
MAX_MODIFIER = 10000


@dataclass(frozen=True)
class DiceLimits:
    """Guardrails applied by the parser."""
    max_dice: int = MAX_DICE
    max_sides: int = MAX_SIDES
    max_modifier: int = MAX_MODIFIER


class ParseError(ValueError):
    """Raised when a dice expression cannot be parsed.

    Attributes
    ----------
    text : str
        The full expression as supplied.
    position : int
        Index into text where the problem starts.
    fragment : str
        The offending substring ("" at end of input).
    """

    def __init__(self, message: str, text: str = "", position: int = 0, fragment: str = ""):
        super().__init__(message)
        self.text = text
        self.position = position
        self.fragment = fragment


# ─── Domain Model ───────────────────────────────────────────────────

@dataclass(frozen=True)
class KeepRule:
    """Keep the `count` highest (or lowest) dice of a term."""
    highest: bool
    count: int

    def __str__(self) -> str:
        return f"{'kh' if self.highest else 'kl'}{self.count}"

    def select(self, rolls: tuple[int, ...]) -> tuple[int, ...]:
        ordered = sorted(rolls, reverse=self.highest)
        return tuple(ordered[:self.count])


@dataclass(frozen=True)
class DiceTerm:
    """One dice group and its modifier.

    `sign` is +1 or -1 and applies to the dice plus the modifier.
    """
    count: int
    sides: int
    modifier: int = 0
    keep: Optional[KeepRule] = None
    sign: int = 1

    @property
    def dice(self) -> str:
        """Notation for the dice alone, e.g. "4d6kh3"."""
        keep = str(self.keep) if self.keep else ""
        return f"{self.count}d{self.sides}{keep}"

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.dice}+{self.modifier}"
        elif self.modifier < 0:
            return f"{self.dice}{self.modifier}"
        return self.dice


@dataclass(frozen=True)
class Expression:
    """An ordered, non-empty sequence of terms."""
    terms: tuple[DiceTerm, ...]

    def __str__(self) -> str:
        parts = []
        for index, term in enumerate(self.terms):
            if index == 0:
                parts.append(str(term))
            else:
                parts.append(("+" if term.sign > 0 else "-") + str(term))
        return "".join(parts)


@dataclass(frozen=True)
class RollOutcome:
    """The dice rolled for one term."""
    term: DiceTerm
    rolls: tuple[int, ...]
    kept: tuple[int, ...]

    @property
    def subtotal(self) -> int:
        """Kept dice plus modifier, before the term sign."""
        return sum(self.kept) + self.term.modifier

    @property
    def signed_total(self) -> int:
        """This term's contribution to the overall total."""
        return self.term.sign * self.subtotal

    def describe(self) -> str:
        """Breakdown for one term: "2d6: [4, 5] (+3)"."""
        prefix = "-" if self.term.sign < 0 else ""
        text = f"{prefix}{self.term.dice}: [{', '.join(str(r) for r in self.rolls)}]"
        if self.term.keep:
            text += f" kept [{', '.join(str(r) for r in self.kept)}]"
        mod = self.term.modifier
        if mod > 0:
            text += f" (+{mod})"
        elif mod < 0:
            text += f" ({mod})"
        return text

    def to_dict(self) -> dict:
        return {
            "term": str(self.term),
            "count": self.term.count,
            "sides": self.term.sides,
            "keep": str(self.term.keep) if self.term.keep else None,
            "modifier": self.term.modifier,
            "sign": self.term.sign,
            "rolls": list(self.rolls),
            "kept": list(self.kept),
            "subtotal": self.subtotal,
        }


@dataclass(frozen=True)
class RollResult:
    """The outcome of evaluating an Expression."""
    expression_text: str
    outcomes: tuple[RollOutcome, ...]
    total: int

    @property
    def rolls(self) -> tuple[int, ...]:
        """Every individual die result, in draw order."""
        return tuple(r for outcome in self.outcomes for r in outcome.rolls)

    def breakdown(self) -> str:
        return "; ".join(outcome.describe() for outcome in self.outcomes)

    def format_summary(self) -> str:
        """One-line summary: 🎲 <expr> → <breakdown> = <total>"""
        return f"\U0001f3b2 {self.expression_text} \u2192 {self.breakdown()} = {self.total}"

    def to_dict(self) -> dict:
        return {
            "expression": self.expression_text,
            "total": self.total,
            "rolls": list(self.rolls),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "breakdown": self.breakdown(),
        }


# ─── Parser ─────────────────────────────────────────────────────────

# Order matters: a malformed number must win over a plain number.
_TOKEN_PATTERN = re.compile(
    r"(?P<space>\s+)"
    r"|(?P<badnum>\d+[.,_]\d*)"
    r"|(?P<num>\d+)"
    r"|(?P<keep>k[hl]?)"
    r"|(?P<dice>d)"
    r"|(?P<op>[+-])",
    re.IGNORECASE,
)


class _Token(NamedTuple):
    kind: str
    text: str
    position: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise ParseError(
                f"Unexpected character {text[position]!r} at position {position}",
                text, position, text[position:],
            )
        kind = match.lastgroup
        if kind == "badnum":
            raise ParseError(
                f"Malformed number {match.group()!r}: only whole numbers are allowed",
                text, position, match.group(),
            )
        if kind != "space":
            tokens.append(_Token(kind, match.group().lower(), position))
        position = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, text: str, limits: DiceLimits):
        self.text = text
        self.limits = limits
        self.tokens = _tokenize(text)
        self.index = 0

    def _peek(self, offset: int = 0) -> Optional[_Token]:
        i = self.index + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, message: str, token: Optional[_Token]) -> ParseError:
        if token is None:
            return ParseError(
                f"{message} (unexpected end of expression)",
                self.text, len(self.text), "",
            )
        return ParseError(
            f"{message}, got {token.text!r} at position {token.position}",
            self.text, token.position, self.text[token.position:],
        )

    def _expect(self, kind: str, message: str) -> _Token:
        token = self._peek()
        if token is None or token.kind != kind:
            raise self._error(message, token)
        return self._advance()

    def _number(self, token: _Token) -> int:
        # int() refuses literals past sys.get_int_max_str_digits()
        try:
            return int(token.text)
        except ValueError:
            raise ParseError(
                f"Number at position {token.position} is too long ({len(token.text)} digits)",
                self.text, token.position, token.text,
            ) from None

    def _starts_term(self, offset: int) -> bool:
        token = self._peek(offset)
        if token is None:
            return False
        if token.kind == "dice":
            return True
        following = self._peek(offset + 1)
        return token.kind == "num" and following is not None and following.kind == "dice"

    def parse(self) -> Expression:
        if not self.tokens:
            raise ParseError("No dice notation provided", self.text, 0, "")

        terms = [self._term(sign=1)]
        while self._peek() is not None:
            token = self._peek()
            if token.kind != "op":
                raise self._error("Expected '+' or '-' between terms", token)
            self._advance()
            terms.append(self._term(sign=1 if token.text == "+" else -1))
        return Expression(terms=tuple(terms))

    def _term(self, sign: int) -> DiceTerm:
        count = 1
        count_token = None
        if self._peek() is not None and self._peek().kind == "num":
            count_token = self._advance()
            count = self._number(count_token)

        dice_token = self._expect("dice", "Expected 'd'")
        sides_token = self._expect("num", "Expected number of sides after 'd'")
        sides = self._number(sides_token)

        if count < 1 or count > self.limits.max_dice:
            raise ParseError(
                f"Dice count must be between 1 and {self.limits.max_dice}, got {count}. "
                f"The table only has so many dice.",
                self.text, count_token.position, count_token.text,
            )
        if sides < MIN_SIDES or sides > self.limits.max_sides:
            raise ParseError(
                f"Die sides must be between {MIN_SIDES} and {self.limits.max_sides}, got {sides}. "
                f"A d1 is a marble, not a die.",
                self.text, sides_token.position, sides_token.text,
            )

        keep = None
        if self._peek() is not None and self._peek().kind == "keep":
            keep_token = self._advance()
            keep_count = 1
            if self._peek() is not None and self._peek().kind == "num":
                keep_count = self._number(self._advance())
            if keep_count < 1 or keep_count > count:
                raise ParseError(
                    f"Can only keep between 1 and {count} dice, got {keep_count}",
                    self.text, keep_token.position, self.text[keep_token.position:],
                )
            keep = KeepRule(highest=keep_token.text != "kl", count=keep_count)

        modifier = 0
        token = self._peek()
        if token is not None and token.kind == "op" and not self._starts_term(1):
            self._advance()
            mod_token = self._expect("num", f"Expected a number after {token.text!r}")
            modifier = self._number(mod_token)
            if modifier > self.limits.max_modifier:
                raise ParseError(
                    f"Modifier must be between -{self.limits.max_modifier} "
                    f"and +{self.limits.max_modifier}, got {token.text}{modifier}",
                    self.text, mod_token.position, mod_token.text,
                )
            if token.text == "-":
                modifier = -modifier

        return DiceTerm(count=count, sides=sides, modifier=modifier, keep=keep, sign=sign)


def parse_dice(text: str, limits: DiceLimits = DiceLimits()) -> Expression:
    """Parse a dice expression.

    Parameters
    ----------
    text : str
        The expression, e.g. "2d6+3" or "4d6kh3".
    limits : DiceLimits
        Guardrails for count, sides and modifier.

    Raises
    ------
    ParseError
        If text is empty, does not match the grammar, or breaks a limit.
    """
    return _Parser(text, limits).parse()


# ─── Evaluator ──────────────────────────────────────────────────────

def roll_dice(expression: Expression, random: RandomSource) -> RollResult:
    """Roll every term of an expression.

    Draws `count` values in [1, sides] per term from `random`, applies
    the keep rule, and sums the signed contributions. Errors from the
    random source propagate unchanged.
    """
    outcomes = []
    for term in expression.terms:
        rolls = tuple(random.next_int(1, term.sides) for _ in range(term.count))
        kept = term.keep.select(rolls) if term.keep else rolls
        outcomes.append(RollOutcome(term=term, rolls=rolls, kept=kept))

    total = sum(outcome.signed_total for outcome in outcomes)
    return RollResult(
        expression_text=str(expression),
        outcomes=tuple(outcomes),
        total=total,
    )


# ─── Command Handler ────────────────────────────────────────────────

USAGE = "/roll [N]d<S>[kh|kl K][+|-<mod>] ..."


class DiceCommand(Command):
    """The /roll command. Registered as /roll and /r.

    Each roll gets a fresh RandomSource from `random_factory`. With a
    `prompt`, a bare /roll asks the user for the expression.
    """

    def __init__(
        self,
        random_factory: Callable[[], RandomSource] = SystemRandomSource,
        limits: DiceLimits = DiceLimits(),
        prompt: Optional[UserPrompt] = None,
    ):
        self.random_factory = random_factory
        self.limits = limits
        self.prompt = prompt

    @property
    def name(self) -> str:
        return "roll"

    @property
    def aliases(self) -> list[str]:
        return ["r"]

    @property
    def help_text(self) -> str:
        return f"{USAGE} - Roll dice (e.g., /roll 2d6+3, /roll 4d6kh3)"

    def execute(self, args: str) -> CommandResult:
        if not args.strip() and self.prompt is not None:
            answer = self.prompt.ask(PROMPT_LABEL)
            if answer is None:
                return CommandResult(
                    command=self.name,
                    summary="Roll cancelled",
                    details={"cancelled": True},
                )
            args = answer

        if not args.strip():
            return CommandResult(
                command=self.name,
                summary="",
                error=f"No dice notation provided. Usage: {USAGE}\n"
                      f"Examples: /roll d20, /roll 4d6kh3, /roll 2d8+5",
            )

        try:
            expression = parse_dice(args, self.limits)
        except ParseError as e:
            return CommandResult(command=self.name, summary="", error=str(e))

        result = roll_dice(expression, self.random_factory())
        return CommandResult(
            command=self.name,
            summary=result.format_summary(),
            details=result.to_dict(),
        )
