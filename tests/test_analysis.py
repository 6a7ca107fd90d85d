"""Tests for spacing analysis and family-unit gap analysis."""

import pytest

from analysis import (
    PairMeasurement,
    analyse_family_unit_gaps,
    analyse_layout_patterns,
    calculate_stats,
    find_family_units,
    measure_neighbourhood,
)
from graph import build_relationship_index
from models import LegitimacyStatus, Person, Position, Relationship

# Parent 3 with a legitimate child 1 and a bastard child 2
_OFFSET_PEOPLE = [
    Person(1, legitimacy_status="legitimate"),
    Person(2, legitimacy_status="bastard"),
    Person(3),
]
_OFFSET_RELS = [Relationship(3, 1, "parent"), Relationship(3, 2, "parent")]

# Person 1 has two families: children 4, 5 with spouse 2 and children 6, 7 with spouse 3
_TWO_UNIT_PEOPLE = [Person(i) for i in range(1, 8)]
_TWO_UNIT_RELS = [
    Relationship(1, 2, "spouse"),
    Relationship(1, 3, "spouse"),
    Relationship(1, 4, "parent"),
    Relationship(1, 5, "parent"),
    Relationship(2, 4, "parent"),
    Relationship(2, 5, "parent"),
    Relationship(1, 6, "parent"),
    Relationship(1, 7, "parent"),
    Relationship(3, 6, "parent"),
    Relationship(3, 7, "parent"),
]
_TWO_UNIT_MANUAL = {
    1: Position(0, 0),
    2: Position(170, 0),
    3: Position(-170, 0),
    6: Position(-300, 200),
    7: Position(-100, 200),
    4: Position(90, 200),
    5: Position(290, 200),
}


# ============================================================================
# calculate_stats
# ============================================================================


def test_stats_of_empty_sample():
    stat = calculate_stats([], "Sibling Spacing")

    assert stat.count == 0
    assert stat.avg is None
    assert stat.min is None
    assert stat.max is None
    assert stat.consistency is None
    assert stat.label == "Sibling Spacing"


def test_stats_of_identical_values_are_fully_consistent():
    stat = calculate_stats([180, 180, 180])

    assert stat.count == 3
    assert stat.avg == 180
    assert stat.consistency == 100


def test_stats_of_spread_sample():
    stat = calculate_stats([100, 200, 300])

    assert stat.min == 100
    assert stat.max == 300
    assert stat.avg == 200
    assert stat.consistency == 59


def test_average_rounds_half_up():
    stat = calculate_stats([1, 2])

    assert stat.avg == 2
    assert stat.consistency == 67


def test_consistency_floors_at_zero_for_zero_mean():
    stat = calculate_stats([-10, 10])

    assert stat.avg == 0
    assert stat.consistency == 0


def test_negative_offsets_keep_their_sign():
    stat = calculate_stats([-60, -60])

    assert stat.avg == -60
    assert stat.consistency == 100


@pytest.mark.parametrize("values", [[5], [0, 0], [1, 1000], [-3, 7, 12], [0.5, 0.25]])
def test_consistency_stays_in_range(values):
    stat = calculate_stats(values)

    assert 0 <= stat.consistency <= 100
    assert stat.count == len(values)


# ============================================================================
# analyse_layout_patterns
# ============================================================================


def test_empty_manual_map_yields_no_samples():
    index = build_relationship_index(_OFFSET_RELS)

    analysis = analyse_layout_patterns(_OFFSET_PEOPLE, {}, index)

    for stat in (
        analysis.generation_height,
        analysis.sibling_spacing,
        analysis.spouse_spacing,
        analysis.bastard_offset.horizontal,
        analysis.adopted_offset.vertical,
    ):
        assert stat.count == 0
        assert stat.avg is None
    assert analysis.summary.people_positioned == 0


def test_bastard_offset_against_legitimate_sibling():
    index = build_relationship_index(_OFFSET_RELS)
    positions = {1: Position(100, 200), 2: Position(160, 230)}

    analysis = analyse_layout_patterns(_OFFSET_PEOPLE, positions, index)

    horizontal = analysis.bastard_offset.horizontal
    vertical = analysis.bastard_offset.vertical
    assert horizontal.count == 1
    assert horizontal.avg == 60
    assert horizontal.min == horizontal.max == 60
    assert horizontal.consistency == 100
    assert vertical.avg == 30
    assert analysis.adopted_offset.horizontal.count == 0
    assert analysis.summary.offset_pairs[LegitimacyStatus.BASTARD] == 1


def test_offset_to_the_left_is_negative():
    index = build_relationship_index(_OFFSET_RELS)
    positions = {1: Position(100, 200), 2: Position(40, 200)}

    analysis = analyse_layout_patterns(_OFFSET_PEOPLE, positions, index)

    assert analysis.bastard_offset.horizontal.avg == -60
    assert analysis.bastard_offset.vertical.avg == 0


def test_adopted_offset_uses_adoptive_parent_links():
    people = [Person(1), Person(2, legitimacy_status="adopted"), Person(3)]
    index = build_relationship_index([Relationship(3, 1, "parent"), Relationship(3, 2, "adopted-parent")])
    positions = {1: Position(0, 200), 2: Position(220, 180)}

    analysis = analyse_layout_patterns(people, positions, index)

    assert analysis.adopted_offset.horizontal.avg == 220
    assert analysis.adopted_offset.vertical.avg == -20
    assert analysis.bastard_offset.horizontal.count == 0


def test_foster_children_are_not_offset_samples():
    people = [Person(1), Person(2, legitimacy_status="foster"), Person(3)]
    index = build_relationship_index([Relationship(3, 1, "parent"), Relationship(3, 2, "foster-parent")])
    positions = {1: Position(0, 200), 2: Position(200, 200)}

    analysis = analyse_layout_patterns(people, positions, index)

    assert analysis.bastard_offset.horizontal.count == 0
    assert analysis.adopted_offset.horizontal.count == 0


def test_generation_height_is_absolute_vertical_distance():
    index = build_relationship_index(_OFFSET_RELS)
    positions = {3: Position(0, 0), 1: Position(100, 200), 2: Position(160, 230)}

    analysis = analyse_layout_patterns(_OFFSET_PEOPLE, positions, index)

    stat = analysis.generation_height
    assert stat.count == 2
    assert (stat.min, stat.max, stat.avg) == (200, 230, 215)
    assert stat.consistency == 93


def test_spouse_pairs_are_counted_once():
    people = [Person(1), Person(2)]
    index = build_relationship_index([Relationship(1, 2, "spouse"), Relationship(2, 1, "spouse")])
    positions = {1: Position(0, 0), 2: Position(-170, 0)}

    analysis = analyse_layout_patterns(people, positions, index)

    assert analysis.spouse_spacing.count == 1
    assert analysis.spouse_spacing.avg == 170


def test_sibling_spacing_uses_adjacent_full_siblings():
    index = build_relationship_index(_TWO_UNIT_RELS)

    analysis = analyse_layout_patterns(_TWO_UNIT_PEOPLE, _TWO_UNIT_MANUAL, index)

    # 4-5 and 6-7 are adjacent; the half siblings across units are not sampled
    assert analysis.sibling_spacing.values == (200, 200)
    assert analysis.summary.sibling_pairs == 2


def test_analysis_does_not_modify_positions():
    index = build_relationship_index(_TWO_UNIT_RELS)
    manual = dict(_TWO_UNIT_MANUAL)

    analyse_layout_patterns(_TWO_UNIT_PEOPLE, manual, index)

    assert manual == _TWO_UNIT_MANUAL


def test_measure_neighbourhood():
    index = build_relationship_index(_OFFSET_RELS)
    positions = {1: Position(100, 200), 2: Position(160, 230)}

    result = measure_neighbourhood(1, positions, index)

    assert result == [PairMeasurement("sibling", 1, 2, 60, 30)]
    assert measure_neighbourhood(3, positions, index) == []


# ============================================================================
# Family units
# ============================================================================


def test_family_unit_members():
    people = [Person(i) for i in range(1, 9)]
    index = build_relationship_index(
        [
            Relationship(1, 2, "spouse"),
            Relationship(1, 3, "parent"),
            Relationship(2, 3, "parent"),
            Relationship(1, 4, "parent"),
            Relationship(2, 4, "parent"),
            Relationship(3, 5, "spouse"),
            Relationship(4, 6, "spouse"),
            Relationship(7, 6, "parent"),
            Relationship(3, 8, "parent"),
            Relationship(5, 8, "parent"),
        ]
    )
    positions = {i: Position(i * 200, 0) for i in range(1, 9)}

    units = {u.parents: u for u in find_family_units(people, positions, index)}

    # 5 married in; 6 has parents of their own and stays in their own unit
    assert units[(1, 2)].members == frozenset({3, 4, 5, 8})
    assert units[(7,)].members == frozenset({6})
    assert units[(1, 2)].generation == 1
    assert units[(3, 5)].generation == 2


def test_gap_between_units_below_the_rule():
    index = build_relationship_index(_TWO_UNIT_RELS)

    report = analyse_family_unit_gaps(_TWO_UNIT_PEOPLE, _TWO_UNIT_MANUAL, index, rule_gap=60)

    assert len(report.units) == 2
    assert len(report.gaps) == 1
    gap = report.gaps[0]
    assert gap.left.parents == (1, 3)
    assert gap.right.parents == (1, 2)
    assert gap.gap == 40
    assert gap.margin == -20
    assert gap.category == "both-legitimate"
    assert not gap.overlapping
    assert report.below_rule == (gap,)
    assert report.overall.avg == 40
    assert report.by_category["both-legitimate"].count == 1


def test_overlapping_units_report_negative_gap():
    index = build_relationship_index(_TWO_UNIT_RELS)
    manual = dict(_TWO_UNIT_MANUAL)
    manual[4] = Position(0, 200)

    report = analyse_family_unit_gaps(_TWO_UNIT_PEOPLE, manual, index)

    assert report.gaps[0].gap == -50
    assert report.overlaps == report.gaps
    assert report.gaps[0].margin is None


def test_gap_category_names_notable_statuses():
    people = [p if p.id != 6 else Person(6, legitimacy_status="bastard") for p in _TWO_UNIT_PEOPLE]
    index = build_relationship_index(_TWO_UNIT_RELS)

    report = analyse_family_unit_gaps(people, _TWO_UNIT_MANUAL, index)

    assert report.gaps[0].category == "with-bastard"
    assert set(report.by_category) == {"with-bastard"}


def test_units_without_positions_are_skipped():
    index = build_relationship_index(_TWO_UNIT_RELS)
    manual = {pid: p for pid, p in _TWO_UNIT_MANUAL.items() if pid not in (6, 7)}

    report = analyse_family_unit_gaps(_TWO_UNIT_PEOPLE, manual, index)

    assert [u.parents for u in report.units] == [(1, 2)]
    assert report.gaps == ()
    assert report.overall.count == 0
