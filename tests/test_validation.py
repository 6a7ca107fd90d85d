from models import Person, Relationship
from validation import validate_relationships

_PEOPLE = [Person(1), Person(2), Person(3)]


def test_clean_data_has_no_warnings():
    relationships = [
        Relationship(1, 3, "parent"),
        Relationship(2, 3, "parent"),
        Relationship(1, 2, "spouse"),
    ]

    assert validate_relationships(_PEOPLE, relationships) == []


def test_unknown_type_is_reported():
    warnings = validate_relationships(_PEOPLE, [Relationship(1, 2, "cousin")])

    assert warnings == ["Unknown relationship type 'cousin' between 1 and 2"]


def test_missing_id_and_self_relationship():
    warnings = validate_relationships(
        _PEOPLE, [Relationship(None, 2, "parent"), Relationship(3, 3, "spouse")]
    )

    assert warnings == [
        "Relationship parent is missing a person id",
        "Person 3 has a spouse relationship with themselves",
    ]


def test_unknown_people_are_reported_once():
    warnings = validate_relationships(
        _PEOPLE, [Relationship(1, 9, "parent"), Relationship(9, 2, "spouse")]
    )

    assert warnings == ["Relationship refers to unknown person 9"]


def test_parent_cycle_is_reported():
    warnings = validate_relationships(
        _PEOPLE,
        [Relationship(1, 2, "parent"), Relationship(2, 3, "parent"), Relationship(3, 1, "adopted-parent")],
    )

    assert len(warnings) == 1
    assert warnings[0].startswith("Cycle detected in parent-child relationships")


def test_more_than_two_parents():
    people = _PEOPLE + [Person(4)]
    relationships = [Relationship(p, 4, "parent") for p in (1, 2)] + [Relationship(3, 4, "foster-parent")]

    warnings = validate_relationships(people, relationships)

    assert warnings == ["Person 4 has 3 recorded parents"]
