"""
Persistence Interface
=====================
The store never persists anything itself; it reads and writes through a
repository. Implementations: ``InMemoryRepository`` (tests, embedding) and
``oncall_rota.io.CsvRepository``.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from oncall_rota.models.preference import ShiftPreference
from oncall_rota.models.schedule import RotaSchedule
from oncall_rota.models.user import RotaUser


class RotaRepository(ABC):
    """Opaque read/write interface to the outside world."""

    @abstractmethod
    def load_roster(self) -> List[RotaUser]:
        """Return every user eligible for scheduling."""
        pass

    @abstractmethod
    def save_schedule(self, schedule: RotaSchedule) -> None:
        """Persist a committed schedule."""
        pass

    @abstractmethod
    def load_preferences(self, user_id: str) -> List[ShiftPreference]:
        """Return the stored preferences of one user."""
        pass


class InMemoryRepository(RotaRepository):
    """Repository holding everything in process memory."""

    def __init__(
        self,
        roster: Iterable[RotaUser] = (),
        preferences: Iterable[ShiftPreference] = (),
    ):
        self.roster: List[RotaUser] = list(roster)
        self.preferences: Dict[str, List[ShiftPreference]] = {}
        for p in preferences:
            self.preferences.setdefault(p.user_id, []).append(p)
        self.saved: List[RotaSchedule] = []

    def load_roster(self) -> List[RotaUser]:
        return list(self.roster)

    def save_schedule(self, schedule: RotaSchedule) -> None:
        self.saved.append(schedule)

    def load_preferences(self, user_id: str) -> List[ShiftPreference]:
        return list(self.preferences.get(user_id, []))

    @property
    def latest(self) -> Optional[RotaSchedule]:
        return self.saved[-1] if self.saved else None
