"""Expansion of recurring requirement templates into dated requirements."""
import datetime as dt
from typing import AbstractSet, List, Sequence

from oncall_rota.models.schedule import RequirementTemplate, ShiftRequirement
from oncall_rota.models.shift import is_weekend, iter_dates
from oncall_rota.utils.logging_setup import get_logger, log_function_call

logger = get_logger("oncall_rota.engine.requirements")


def applies_on(template: RequirementTemplate, day: dt.date, holidays: AbstractSet[dt.date]) -> bool:
    """Check whether a template asks for cover on a given date."""
    if template.weekdays is not None and day.weekday() not in template.weekdays:
        return False
    holiday = day in holidays
    if template.exclude_holidays and holiday:
        return False
    if template.only_holidays and not holiday:
        return False
    if template.only_weekends and not is_weekend(day):
        return False
    return True


@log_function_call
def expand_requirements(
    templates: Sequence[RequirementTemplate],
    start: dt.date,
    end: dt.date,
    holidays: AbstractSet[dt.date] = frozenset(),
) -> List[ShiftRequirement]:
    """
    Expand templates over ``start``..``end`` inclusive.

    Args:
        templates: Recurring demand definitions
        start: First date of the period
        end: Last date of the period
        holidays: Public holidays in the period

    Returns:
        One ShiftRequirement per template per applicable date, grouped by
        template in input order.
    """
    if end < start:
        raise ValueError(f"period end {end} is before start {start}")

    requirements = []
    for template in templates:
        for day in iter_dates(start, end):
            if applies_on(template, day, holidays):
                requirements.append(ShiftRequirement(
                    date=day,
                    shift_type=template.shift_type,
                    count=template.count,
                    min_tier=template.min_tier,
                ))

    logger.info(f"Expanded {len(templates)} templates into {len(requirements)} requirements "
                f"for {start.isoformat()}..{end.isoformat()}")
    return requirements
