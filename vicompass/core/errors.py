from __future__ import annotations


class InvalidConfiguration(ValueError):
    """Raised when a setting falls outside its enumerated or valid range.

    Callers receive this before any state is mutated.
    """
