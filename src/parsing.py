"""GEDCOM and JSON loaders producing layout-engine records."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from ged4py import GedcomReader

from models import LegitimacyStatus, Person, Position, Relationship, RelationshipType, RuleSet
from rules import rules_from_dict

# GEDCOM FAMC.PEDI linkage -> relationship type of the parent records
PEDIGREE_TYPES = {
    "birth": RelationshipType.PARENT,
    "adopted": RelationshipType.ADOPTED_PARENT,
    "foster": RelationshipType.FOSTER_PARENT,
}


@dataclass
class Dataset:
    people: list[Person]
    relationships: list[Relationship]
    positions: dict = field(default_factory=dict)
    rules: RuleSet = field(default_factory=RuleSet)


# ============================================================================
# GEDCOM
# ============================================================================


def extract_numeric_id(xref_id: str) -> int:
    """Extract numeric part from GEDCOM xref_id like '@I_347421849@' or 'I674624289'."""
    digits = re.sub(r"[^0-9]", "", xref_id)
    if not digits:
        raise ValueError(f"No numeric ID found in: {xref_id}")
    return int(digits)


def extract_name(indi) -> str | None:
    """Full display name from an individual record."""
    name_rec = indi.sub_tag("NAME")
    if name_rec is None or name_rec.value is None:
        return None

    # ged4py returns NAME as tuple: (given, surname, suffix)
    if isinstance(name_rec.value, tuple):
        parts = [p for p in name_rec.value if p]
        return " ".join(parts) or None

    return str(name_rec.value).replace("/", "").strip() or None


def extract_sex(indi) -> str | None:
    """Extract sex from an individual record."""
    sex_rec = indi.sub_tag("SEX")
    return sex_rec.value if sex_rec else None


def extract_pedigrees(indi) -> dict[str, str]:
    """Family xref -> pedigree linkage ("birth", "adopted", "foster") from FAMC.PEDI."""
    pedigrees = {}
    for famc in indi.sub_tags("FAMC", follow=False):
        pedi = famc.sub_tag("PEDI")
        if famc.value and pedi is not None and pedi.value:
            pedigrees[str(famc.value)] = str(pedi.value).strip().lower()
    return pedigrees


def status_from_pedigrees(pedigrees: dict[str, str]) -> LegitimacyStatus:
    linkages = set(pedigrees.values())
    if "adopted" in linkages:
        return LegitimacyStatus.ADOPTED
    if "foster" in linkages:
        return LegitimacyStatus.FOSTER
    return LegitimacyStatus.LEGITIMATE


def normalize_gedcom(reader: GedcomReader) -> tuple[list[Person], list[Relationship]]:
    """
    Extract people and relationships from parsed GEDCOM data.

    Children's order within their first family becomes their birth-order hint,
    and FAMC pedigree linkage decides whether parent records are plain,
    adopted or foster. GEDCOM has no notion of illegitimacy, so nobody comes
    out as a bastard.
    """
    individuals: dict[int, dict] = {}
    pedigree_by_child: dict[int, dict[str, str]] = {}

    # First pass: individuals
    for rec in reader.records0("INDI"):
        if rec.xref_id is None:
            continue
        indi_id = extract_numeric_id(rec.xref_id)
        pedigrees = extract_pedigrees(rec)
        pedigree_by_child[indi_id] = pedigrees
        individuals[indi_id] = {
            "name": extract_name(rec),
            "gender": extract_sex(rec),
            "status": status_from_pedigrees(pedigrees),
            "birth_order": None,
        }

    relationships: list[Relationship] = []

    # Second pass: family records
    for rec in reader.records0("FAM"):
        fam_id = rec.xref_id
        if fam_id is None:
            continue

        husb = rec.sub_tag("HUSB")
        wife = rec.sub_tag("WIFE")
        husb_id = extract_numeric_id(husb.xref_id) if husb and husb.xref_id else None
        wife_id = extract_numeric_id(wife.xref_id) if wife and wife.xref_id else None

        if husb_id and wife_id:
            relationships.append(Relationship(husb_id, wife_id, RelationshipType.SPOUSE.value))

        for order, child in enumerate(rec.sub_tags("CHIL")):
            if not child.xref_id:
                continue
            child_id = extract_numeric_id(child.xref_id)
            if child_id in individuals and individuals[child_id]["birth_order"] is None:
                individuals[child_id]["birth_order"] = order

            linkage = pedigree_by_child.get(child_id, {}).get(fam_id, "birth")
            rel_type = PEDIGREE_TYPES.get(linkage, RelationshipType.PARENT)
            for parent_id in (husb_id, wife_id):
                if parent_id:
                    relationships.append(Relationship(parent_id, child_id, rel_type.value))

    people = [
        Person(
            id=indi_id,
            gender=data["gender"],
            legitimacy_status=data["status"],
            birth_order=data["birth_order"],
            name=data["name"],
        )
        for indi_id, data in individuals.items()
    ]
    return people, relationships


def load_gedcom(filepath: Path) -> Dataset:
    with GedcomReader(str(filepath)) as reader:
        people, relationships = normalize_gedcom(reader)
    return Dataset(people=people, relationships=relationships)


# ============================================================================
# JSON
# ============================================================================


def _pick(record: dict, *keys):
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def parse_dataset(data: dict) -> Dataset:
    """
    Build a dataset from a JSON-style dict.

    Keys may be camelCase (as exported by the browser front end) or
    snake_case. Position map keys are matched to person ids by their text, so
    JSON's string keys find integer ids.
    """
    people = [
        Person(
            id=record["id"],
            gender=record.get("gender"),
            legitimacy_status=_pick(record, "legitimacyStatus", "legitimacy_status", "bastardStatus"),
            birth_order=_pick(record, "birthOrder", "birth_order"),
            name=_pick(record, "name", "firstName"),
        )
        for record in data.get("people", [])
        if record.get("id") is not None
    ]

    relationships = [
        Relationship(
            person1_id=_pick(record, "person1Id", "person1_id"),
            person2_id=_pick(record, "person2Id", "person2_id"),
            relationship_type=_pick(record, "relationshipType", "relationship_type"),
        )
        for record in data.get("relationships", [])
    ]

    ids_by_text = {str(p.id): p.id for p in people}
    positions = {
        ids_by_text.get(str(key), key): Position(value["x"], value["y"])
        for key, value in data.get("positions", {}).items()
    }

    return Dataset(
        people=people,
        relationships=relationships,
        positions=positions,
        rules=rules_from_dict(data.get("rules") or {}),
    )


def load_dataset(path: Path) -> Dataset:
    """Load a dataset from a .json file, or people and relationships from a .ged file."""
    if path.suffix.lower() == ".ged":
        return load_gedcom(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValueError(f"Could not read dataset {path}: {exc}") from exc
    return parse_dataset(data)
