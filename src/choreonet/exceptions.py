"""
choreonet - Exceptions raised by the net engine.

All engine errors inherit from PetriNetError for easy catching.
"""


class PetriNetError(Exception):
    """Base exception for all choreonet errors."""


class NotEnabledError(PetriNetError):
    """A transition or event was fired while the marking does not permit it."""


class NotFoundError(PetriNetError, KeyError):
    """An id does not match any node of the net."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class CompositionError(NotFoundError):
    """An interface declaration cannot be resolved against the child nets."""


class CascadeOverflow(PetriNetError):
    """Silent transitions kept firing past the cascade budget."""

    def __init__(self, budget: int, marking=None):
        super().__init__(f"Silent transition cascade exceeded {budget} firings")
        self.budget = budget
        self.marking = marking
