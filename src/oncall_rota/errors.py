"""Exceptions raised by the rota engine, swap service and store."""
from typing import Iterable, List


class RotaError(Exception):
    """Base class for all rota errors."""
    pass


class ValidationError(RotaError):
    """Raised when generation input is malformed. Nothing is generated."""

    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems) or "invalid input")


class ListingOwnershipError(RotaError):
    """Raised when someone other than the holder lists or cancels a shift."""
    pass


class StaleScheduleError(RotaError):
    """Raised when a commit is based on an outdated schedule version."""

    def __init__(self, expected_version: int, current_version: int):
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Schedule changed since version {expected_version} "
            f"(current version is {current_version})"
        )


class UnknownEntityError(RotaError, KeyError):
    """Raised by store lookups for an unknown user, assignment or listing."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
