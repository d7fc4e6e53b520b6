"""Status enum for maintenance urgency levels."""

from enum import Enum


class Status(Enum):
    """Alert status categories. Lower value = more urgent."""

    OVERDUE = 1
    DUE_SOON = 2
    OK = 3

    @property
    def label(self) -> str:
        """Wire/display label ("overdue", "due-soon", "ok")."""
        return self.name.lower().replace("_", "-")
