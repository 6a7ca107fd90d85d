"""
Spacing-pattern analysis of manually placed family-tree cards.

Measures how an operator has spaced related people (generation height,
sibling and spouse spacing, offsets of bastard and adopted children against
their legitimate siblings) and how far apart neighbouring family units sit.
The averages can seed a RuleSet for the rule-based layout.
"""

import logging
import math
import statistics
from dataclasses import dataclass

from graph import RelationshipIndex, resolve_immediate_family
from models import (
    OFFSET_RULE_BY_STATUS,
    BoundingBox,
    LayoutDefaults,
    LegitimacyStatus,
    Person,
    PersonId,
    Position,
    id_sort_key,
)

logger = logging.getLogger(__name__)

# Statuses that label a family unit's gap category
NOTABLE_STATUSES = frozenset(
    {LegitimacyStatus.BASTARD, LegitimacyStatus.ADOPTED, LegitimacyStatus.FOSTER}
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class SpacingStat:
    count: int
    min: float | None
    max: float | None
    avg: int | None
    consistency: int | None
    values: tuple = ()
    label: str = ""


@dataclass(frozen=True)
class OffsetStats:
    horizontal: SpacingStat
    vertical: SpacingStat


@dataclass(frozen=True)
class PairMeasurement:
    """Signed distance from person1 to person2 (person2 - person1)."""

    kind: str
    person1_id: PersonId
    person2_id: PersonId
    dx: float
    dy: float


@dataclass(frozen=True)
class AnalysisSummary:
    people_positioned: int
    parent_child_pairs: int
    sibling_pairs: int
    spouse_pairs: int
    offset_pairs: dict


@dataclass(frozen=True)
class LayoutAnalysis:
    generation_height: SpacingStat
    sibling_spacing: SpacingStat
    spouse_spacing: SpacingStat
    offsets: dict  # LegitimacyStatus -> OffsetStats
    summary: AnalysisSummary
    measurements: tuple = ()

    @property
    def bastard_offset(self) -> OffsetStats:
        return self.offsets[LegitimacyStatus.BASTARD]

    @property
    def adopted_offset(self) -> OffsetStats:
        return self.offsets[LegitimacyStatus.ADOPTED]


def calculate_stats(values, label: str = "") -> SpacingStat:
    """
    Reduce a sample to min/max/average and a 0-100 consistency score.

    Consistency is 100 * (1 - stddev / max(|mean|, 1)), floored at 0, so a
    sample of identical values scores 100. An empty sample gives count 0 and
    None everywhere else.
    """
    values = tuple(values)
    if not values:
        return SpacingStat(count=0, min=None, max=None, avg=None, consistency=None, label=label)

    mean = statistics.fmean(values)
    spread = statistics.pstdev(values)
    score = round_half_up(100 * max(0.0, 1 - spread / max(abs(mean), 1)))

    return SpacingStat(
        count=len(values),
        min=min(values),
        max=max(values),
        avg=round_half_up(mean),
        consistency=min(100, max(0, score)),
        values=values,
        label=label,
    )


def _pair_key(a: PersonId, b: PersonId) -> frozenset:
    return frozenset((a, b))


def _offset_sample(person: Person | None, pos: Position, other: Person | None, other_pos: Position):
    """(status, dx, dy) of the displaced sibling relative to the legitimate one, if the pair qualifies."""
    if person is None or other is None:
        return None
    for status in OFFSET_RULE_BY_STATUS:
        if person.legitimacy_status is status and other.legitimacy_status is LegitimacyStatus.LEGITIMATE:
            return status, pos.x - other_pos.x, pos.y - other_pos.y
        if other.legitimacy_status is status and person.legitimacy_status is LegitimacyStatus.LEGITIMATE:
            return status, other_pos.x - pos.x, other_pos.y - pos.y
    return None


def analyse_layout_patterns(
    people: list[Person], positions: dict, index: RelationshipIndex
) -> LayoutAnalysis:
    """
    Measure spacing between related people in a manual position map.

    Only pairs where both people are positioned contribute. Sibling spacing is
    measured between horizontally adjacent members of each full-sibling group.
    Offsets are signed so a consistent left/right or up/down bias shows up in
    the average instead of cancelling out.
    """
    people_by_id = {p.id: p for p in people}

    generation_heights = []
    spouse_spacings = []
    sibling_spacings = []
    offset_samples = {status: ([], []) for status in OFFSET_RULE_BY_STATUS}
    measurements = []

    seen_spouses: set = set()
    seen_siblings: set = set()

    for person_id in sorted(positions, key=id_sort_key):
        here = positions[person_id]
        family = resolve_immediate_family(person_id, index)

        for parent_id in family.parents:
            parent_pos = positions.get(parent_id)
            if parent_pos is None:
                continue
            generation_heights.append(abs(here.y - parent_pos.y))
            measurements.append(
                PairMeasurement(
                    "parent-child", parent_id, person_id, here.x - parent_pos.x, here.y - parent_pos.y
                )
            )

        for spouse_id in family.spouses:
            spouse_pos = positions.get(spouse_id)
            pair = _pair_key(person_id, spouse_id)
            if spouse_pos is None or pair in seen_spouses:
                continue
            seen_spouses.add(pair)
            spouse_spacings.append(abs(spouse_pos.x - here.x))
            measurements.append(
                PairMeasurement("spouse", person_id, spouse_id, spouse_pos.x - here.x, spouse_pos.y - here.y)
            )

        for sibling_id in family.siblings:
            sibling_pos = positions.get(sibling_id)
            pair = _pair_key(person_id, sibling_id)
            if sibling_pos is None or pair in seen_siblings:
                continue
            seen_siblings.add(pair)
            sample = _offset_sample(
                people_by_id.get(person_id), here, people_by_id.get(sibling_id), sibling_pos
            )
            if sample is not None:
                status, dx, dy = sample
                offset_samples[status][0].append(dx)
                offset_samples[status][1].append(dy)

    for group in index.sibling_groups():
        placed = sorted(
            (c for c in group.children if c in positions),
            key=lambda c: (positions[c].x, id_sort_key(c)),
        )
        for left, right in zip(placed, placed[1:]):
            left_pos, right_pos = positions[left], positions[right]
            sibling_spacings.append(abs(right_pos.x - left_pos.x))
            measurements.append(
                PairMeasurement(
                    "sibling", left, right, right_pos.x - left_pos.x, right_pos.y - left_pos.y
                )
            )

    offsets = {
        status: OffsetStats(
            horizontal=calculate_stats(h, f"{status.value.title()} Horizontal Offset"),
            vertical=calculate_stats(v, f"{status.value.title()} Vertical Offset"),
        )
        for status, (h, v) in offset_samples.items()
    }

    summary = AnalysisSummary(
        people_positioned=len(positions),
        parent_child_pairs=len(generation_heights),
        sibling_pairs=len(sibling_spacings),
        spouse_pairs=len(spouse_spacings),
        offset_pairs={status: len(h) for status, (h, _) in offset_samples.items()},
    )
    logger.debug("Analysed %d positioned people", summary.people_positioned)

    return LayoutAnalysis(
        generation_height=calculate_stats(generation_heights, "Generation Height"),
        sibling_spacing=calculate_stats(sibling_spacings, "Sibling Spacing"),
        spouse_spacing=calculate_stats(spouse_spacings, "Spouse Spacing"),
        offsets=offsets,
        summary=summary,
        measurements=tuple(measurements),
    )


def measure_neighbourhood(person_id: PersonId, positions: dict, index: RelationshipIndex) -> list:
    """Signed distances from one person to each positioned parent, child, spouse and sibling."""
    here = positions.get(person_id)
    if here is None:
        return []

    family = resolve_immediate_family(person_id, index)
    result = []
    for kind, relatives in (
        ("parent", family.parents),
        ("child", family.children),
        ("spouse", family.spouses),
        ("sibling", family.siblings),
    ):
        for relative in relatives:
            there = positions.get(relative)
            if there is not None:
                result.append(PairMeasurement(kind, person_id, relative, there.x - here.x, there.y - here.y))
    return result


# ============================================================================
# Family-unit gaps
# ============================================================================


@dataclass(frozen=True)
class FamilyUnit:
    """A full-sibling group with their married-in spouses and all descendants."""

    parents: tuple
    siblings: tuple
    members: frozenset
    bounds: BoundingBox
    generation: int
    statuses: frozenset


@dataclass(frozen=True)
class FamilyUnitGap:
    left: FamilyUnit
    right: FamilyUnit
    gap: float
    category: str
    margin: float | None = None

    @property
    def overlapping(self) -> bool:
        return self.gap < 0

    @property
    def below_rule(self) -> bool:
        return self.margin is not None and self.margin < 0


@dataclass(frozen=True)
class FamilyUnitReport:
    units: tuple
    gaps: tuple
    by_category: dict
    overall: SpacingStat
    rule_gap: float | None = None

    @property
    def overlaps(self) -> tuple:
        return tuple(g for g in self.gaps if g.overlapping)

    @property
    def below_rule(self) -> tuple:
        return tuple(g for g in self.gaps if g.below_rule)


def find_family_units(
    people: list[Person],
    positions: dict,
    index: RelationshipIndex,
    card_width: float = LayoutDefaults.card_width,
    card_height: float = LayoutDefaults.card_height,
) -> list[FamilyUnit]:
    """
    One unit per full-sibling group that has at least one positioned member.

    Spouses count as members only when they married in (no recorded parents of
    their own); a spouse with parents belongs to their own sibling group.
    """
    status_by_id = {p.id: p.legitimacy_status for p in people}
    levels = index.generation_levels()

    units = []
    for group in index.sibling_groups():
        members = set(group.children)
        for child in group.children:
            members |= index.descendants_of(child)
        for member in list(members):
            members.update(s for s in index.spouses_of(member) if not index.parents_of(s))

        bounds = BoundingBox.around(
            (positions[m] for m in members if m in positions), card_width, card_height
        )
        if bounds is None:
            continue

        statuses = frozenset(
            status_by_id[c] for c in group.children if status_by_id.get(c) in NOTABLE_STATUSES
        )
        units.append(
            FamilyUnit(
                parents=group.parents,
                siblings=group.children,
                members=frozenset(members),
                bounds=bounds,
                generation=1 + max(levels.get(p, 0) for p in group.parents),
                statuses=statuses,
            )
        )
    return units


def _gap_category(left: FamilyUnit, right: FamilyUnit) -> str:
    statuses = left.statuses | right.statuses
    if not statuses:
        return "both-legitimate"
    return "with-" + "-".join(sorted(s.value for s in statuses))


def analyse_family_unit_gaps(
    people: list[Person],
    positions: dict,
    index: RelationshipIndex,
    rule_gap: float | None = None,
    card_width: float = LayoutDefaults.card_width,
    card_height: float = LayoutDefaults.card_height,
) -> FamilyUnitReport:
    """
    Horizontal clearance between neighbouring family units of one generation.

    Units of the same generation are sorted left to right and each adjacent
    pair gives one gap (left.max_x to right.min_x). Negative gaps mean the
    bounding boxes overlap and are reported as such, not clamped. With
    `rule_gap` every gap also carries its margin against that rule.
    """
    units = find_family_units(people, positions, index, card_width, card_height)

    rows: dict[int, list[FamilyUnit]] = {}
    for unit in units:
        rows.setdefault(unit.generation, []).append(unit)

    gaps = []
    for generation in sorted(rows):
        row = sorted(
            rows[generation],
            key=lambda u: (u.bounds.min_x, [id_sort_key(p) for p in u.parents]),
        )
        for left, right in zip(row, row[1:]):
            gap = right.bounds.min_x - left.bounds.max_x
            gaps.append(
                FamilyUnitGap(
                    left=left,
                    right=right,
                    gap=gap,
                    category=_gap_category(left, right),
                    margin=None if rule_gap is None else gap - rule_gap,
                )
            )

    by_category: dict[str, list] = {}
    for g in gaps:
        by_category.setdefault(g.category, []).append(g.gap)

    report = FamilyUnitReport(
        units=tuple(units),
        gaps=tuple(gaps),
        by_category={cat: calculate_stats(values, cat) for cat, values in by_category.items()},
        overall=calculate_stats([g.gap for g in gaps], "Family Unit Gap"),
        rule_gap=rule_gap,
    )
    if report.overlaps:
        logger.info("%d pair(s) of family units overlap", len(report.overlaps))
    return report
