"""Completeness scoring over the tracked data sections."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Union

from site_evaluator.schemas.enums import TRACKED_SECTIONS, DataSection, SectionStatus

PARTIAL_WEIGHT = Decimal("0.5")


def score(statuses: Mapping[Union[DataSection, str], Union[SectionStatus, str]]) -> int:
    """Percent of tracked sections populated, counting partial sections as half.

    Sections missing from ``statuses`` count as not started. Halves round up,
    so 4 complete and 1 partial of 7 gives 64.

    Args:
        statuses: Mapping of section to its status

    Returns:
        Integer percentage 0..100
    """
    normalised = {
        DataSection(key): SectionStatus(value)
        for key, value in statuses.items()
    }

    complete = sum(1 for s in TRACKED_SECTIONS if normalised.get(s) == SectionStatus.COMPLETE)
    partial = sum(1 for s in TRACKED_SECTIONS if normalised.get(s) == SectionStatus.PARTIAL)

    weighted = Decimal(complete) + PARTIAL_WEIGHT * Decimal(partial)
    percent = weighted * 100 / Decimal(len(TRACKED_SECTIONS))
    return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
