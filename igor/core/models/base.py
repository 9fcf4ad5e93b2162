"""
Sealable base model — build incrementally, then freeze in place.

Used where a value is assembled step by step (validation reports,
database entries handed out as copies) but must be read-only once it
lands in a detection report.
"""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, PrivateAttr, ValidationError


class SealableModel(BaseModel):
    """Mutable until ``seal()``; afterwards assignments raise.

    The error is the ``ValidationError`` a frozen pydantic model raises,
    so callers see one failure type for both.
    """

    _sealed: bool = PrivateAttr(default=False)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> Self:
        self._sealed = True
        return self

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            raise ValidationError.from_exception_data(
                type(self).__name__,
                [{"type": "frozen_instance", "loc": (name,), "input": value}],
            )
        super().__setattr__(name, value)
