"""Data classes for people, relationships, positions and layout rules."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable

PersonId = Hashable


class LegitimacyStatus(str, Enum):
    LEGITIMATE = "legitimate"
    BASTARD = "bastard"
    ADOPTED = "adopted"
    FOSTER = "foster"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "LegitimacyStatus":
        """Missing status means legitimate; unrecognised strings mean unknown."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.LEGITIMATE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class RelationshipType(str, Enum):
    PARENT = "parent"
    ADOPTED_PARENT = "adopted-parent"
    FOSTER_PARENT = "foster-parent"
    SPOUSE = "spouse"
    SIBLING = "sibling"

    @classmethod
    def parse(cls, value) -> "RelationshipType | None":
        if isinstance(value, cls):
            return value
        if not value:
            return None
        try:
            return cls(str(value).strip().lower().replace("_", "-"))
        except ValueError:
            return None


PARENT_TYPES = frozenset(
    {RelationshipType.PARENT, RelationshipType.ADOPTED_PARENT, RelationshipType.FOSTER_PARENT}
)


@dataclass(frozen=True)
class Person:
    id: PersonId
    gender: str | None = None
    legitimacy_status: LegitimacyStatus = LegitimacyStatus.LEGITIMATE
    birth_order: int | None = None
    name: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "legitimacy_status", LegitimacyStatus.parse(self.legitimacy_status))


@dataclass(frozen=True)
class Relationship:
    person1_id: PersonId
    person2_id: PersonId
    relationship_type: str  # parent, adopted-parent, foster-parent, spouse, sibling


@dataclass(frozen=True)
class Position:
    """Top-left corner of a person's card."""

    x: float
    y: float

    def shifted(self, dx: float = 0, dy: float = 0) -> "Position":
        return Position(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def around(cls, positions, card_width: float, card_height: float) -> "BoundingBox | None":
        """Smallest box enclosing the cards at the given positions."""
        positions = list(positions)
        if not positions:
            return None
        return cls(
            min(p.x for p in positions),
            min(p.y for p in positions),
            max(p.x for p in positions) + card_width,
            max(p.y for p in positions) + card_height,
        )


@dataclass(frozen=True)
class OffsetRule:
    horizontal: float | None = None
    vertical: float | None = None
    position: str | None = None  # None / "in-order" or "end"

    @property
    def is_set(self) -> bool:
        return self.horizontal is not None or self.vertical is not None or self.position is not None


@dataclass(frozen=True)
class RuleSet:
    generation_height: float | None = None
    sibling_spacing: float | None = None
    spouse_spacing: float | None = None
    bastard_offset: OffsetRule = field(default_factory=OffsetRule)
    adopted_offset: OffsetRule = field(default_factory=OffsetRule)
    family_unit_gap: float | None = None

    def offset_for(self, status: LegitimacyStatus) -> OffsetRule | None:
        rule_field = OFFSET_RULE_BY_STATUS.get(status)
        return getattr(self, rule_field) if rule_field else None


# Which statuses are displaced from their sibling slot, and by which rule.
# Legitimate, foster and unknown children keep their slot.
OFFSET_RULE_BY_STATUS = {
    LegitimacyStatus.BASTARD: "bastard_offset",
    LegitimacyStatus.ADOPTED: "adopted_offset",
}


@dataclass(frozen=True)
class LayoutDefaults:
    generation_height: float = 180
    sibling_spacing: float = 200
    spouse_spacing: float = 170
    family_unit_gap: float = 50
    offset_horizontal: float = 0
    offset_vertical: float = 0
    card_width: float = 150
    card_height: float = 70
    difference_threshold: float = 5


def id_sort_key(person_id: PersonId) -> tuple:
    """Ints sort numerically and before everything else, which sorts as text."""
    if isinstance(person_id, int) and not isinstance(person_id, bool):
        return (0, person_id, "")
    return (1, 0, str(person_id))


def person_sort_key(person: Person) -> tuple:
    """Birth-order hint first, people without one after, then by id."""
    has_hint = person.birth_order is not None
    return (not has_hint, person.birth_order if has_hint else 0, id_sort_key(person.id))
