"""Errors raised when the rule tables and the log grammar disagree."""

from __future__ import annotations


class GCLogDefectError(ValueError):
    """A line matched a rule but broke the column layout that rule expects."""


class UnknownEventLabelError(GCLogDefectError):
    """A phase label produced by a rule has no event type in the registry."""

    def __init__(self, label: str, collector: str) -> None:
        super().__init__(f"No event type registered for label {label!r} (collector: {collector})")
        self.label = label
        self.collector = collector
