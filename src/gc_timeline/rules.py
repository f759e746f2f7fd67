"""First-match-wins dispatch of log detail strings to handler functions."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, TypeAlias

from gc_timeline.events import LineContext
from gc_timeline.model import GCModel

PrefixHandler: TypeAlias = Callable[[GCModel, LineContext, str, str], None]
"""Called with (model, context, prefix, value) once the prefix has matched."""

LineHandler: TypeAlias = Callable[[GCModel, LineContext, str], bool]
"""Called with the whole detail string; returns whether it recognised the line."""


class ParseRule(Protocol):
    """Protocol shared by all rules."""

    def apply(self, model: GCModel, context: LineContext, detail: str) -> bool:
        """Handle ``detail`` if the rule matches; return whether it did."""
        ...


class PrefixRule:
    """Matches details starting with a literal prefix.

    The handler receives the text after the prefix with surrounding
    whitespace and a leading ':' separator removed, so both
    ``Metaspace: 12M used`` and ``Young Pause Mark Start 0.010ms`` give the
    bare value.
    """

    def __init__(self, prefix: str, handler: PrefixHandler) -> None:
        self.prefix = prefix
        self.handler = handler

    def apply(self, model: GCModel, context: LineContext, detail: str) -> bool:
        if not detail.startswith(self.prefix):
            return False
        value = detail[len(self.prefix) :].strip().removeprefix(":").strip()
        self.handler(model, context, self.prefix, value)
        return True

    def __repr__(self) -> str:
        return f"PrefixRule({self.prefix!r})"


class PredicateRule:
    """Lets the handler decide on its own whether the whole line matches."""

    def __init__(self, handler: LineHandler) -> None:
        self.handler = handler

    def apply(self, model: GCModel, context: LineContext, detail: str) -> bool:
        return self.handler(model, context, detail)

    def __repr__(self) -> str:
        return f"PredicateRule({getattr(self.handler, '__name__', self.handler)!r})"


def apply_rules(
    rules: Sequence[ParseRule], model: GCModel, context: LineContext, detail: str
) -> bool:
    """Run the first rule that matches ``detail``; False means nothing did."""
    for rule in rules:
        if rule.apply(model, context, detail):
            return True
    return False
