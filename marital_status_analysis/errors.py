# marital_status_analysis/errors.py
"""Loud, user-facing errors raised by the analysis pipeline."""

from __future__ import annotations


class AnalysisError(RuntimeError):
    """Base error with an optional actionable hint appended to the message."""

    def __init__(self, msg: str, *, hint: str | None = None) -> None:
        self.msg = msg
        self.hint = hint
        full = msg if hint is None else f"{msg}\nHINT: {hint}"
        super().__init__(full)


class DatasetError(AnalysisError):
    """Input file is missing, unparseable, or does not match the schema."""


class UnseenLevelError(AnalysisError):
    """A categorical value was not among the levels the model was trained on."""

    def __init__(self, column: str, value: object, levels: list[str]) -> None:
        self.column = column
        self.value = value
        self.levels = list(levels)
        super().__init__(
            f"Unseen level {value!r} for '{column}'",
            hint=f"Known levels: {self.levels}",
        )


class MulticollinearityError(AnalysisError):
    """The design matrix has aliased (exactly collinear) columns."""
