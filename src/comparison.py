"""Comparison of manual positions against rule-synthesized ("ghost") positions."""

import math
from dataclasses import dataclass

from models import LayoutDefaults, PersonId, id_sort_key


@dataclass(frozen=True)
class PositionDelta:
    id: PersonId
    delta_x: float
    delta_y: float
    has_difference: bool

    @property
    def distance(self) -> float:
        return math.hypot(self.delta_x, self.delta_y)


@dataclass(frozen=True)
class PositionComparison:
    per_person: tuple
    match_ratio: float | None

    @property
    def compared(self) -> int:
        return len(self.per_person)

    @property
    def matched(self) -> int:
        return sum(1 for d in self.per_person if not d.has_difference)

    @property
    def mismatches(self) -> list:
        """Differing people, furthest from their manual position first."""
        return sorted(
            (d for d in self.per_person if d.has_difference),
            key=lambda d: (-d.distance, id_sort_key(d.id)),
        )


def compare_positions(
    manual: dict,
    synthesized: dict,
    threshold: float = LayoutDefaults.difference_threshold,
) -> PositionComparison:
    """
    Per-person deltas (synthesized - manual) for people present in both maps.

    A person differs when either axis moves by more than `threshold`. People
    missing from either map are left out rather than counted as mismatches;
    with nobody to compare the match ratio is None.
    """
    shared = sorted((pid for pid in manual if pid in synthesized), key=id_sort_key)

    per_person = []
    for person_id in shared:
        dx = synthesized[person_id].x - manual[person_id].x
        dy = synthesized[person_id].y - manual[person_id].y
        per_person.append(
            PositionDelta(
                id=person_id,
                delta_x=dx,
                delta_y=dy,
                has_difference=abs(dx) > threshold or abs(dy) > threshold,
            )
        )

    if not per_person:
        return PositionComparison(per_person=(), match_ratio=None)

    matched = sum(1 for d in per_person if not d.has_difference)
    return PositionComparison(per_person=tuple(per_person), match_ratio=matched / len(per_person))
