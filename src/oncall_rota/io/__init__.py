# oncall_rota/io - Input/output handling
from .csv_loader import (
    CsvRepository,
    load_preferences,
    load_requirements,
    load_roster,
    save_roster,
    save_schedule,
)

__all__ = [
    "load_roster",
    "save_roster",
    "load_requirements",
    "load_preferences",
    "save_schedule",
    "CsvRepository",
]
