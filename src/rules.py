"""RuleSet export, import, and seeding from observed spacing."""

import json
import logging
from dataclasses import replace

from models import OffsetRule, RuleSet

logger = logging.getLogger(__name__)

SCALAR_FIELDS = ("generation_height", "sibling_spacing", "spouse_spacing", "family_unit_gap")
OFFSET_FIELDS = ("bastard_offset", "adopted_offset")

FIELD_COMMENTS = {
    "generation_height": "Vertical distance between parent and child generations",
    "sibling_spacing": "Horizontal distance between adjacent siblings",
    "spouse_spacing": "Horizontal distance between married partners",
    "bastard_offset": "Offset for bastard children relative to their slot among siblings",
    "adopted_offset": "Offset for adopted children relative to their slot among siblings",
    "family_unit_gap": "Minimum gap between sibling family bounding boxes",
}

EXPORT_ORDER = (
    "generation_height",
    "sibling_spacing",
    "spouse_spacing",
    "bastard_offset",
    "adopted_offset",
    "family_unit_gap",
)


def _camel_to_snake(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


def rules_to_dict(rules: RuleSet) -> dict:
    """Only the fields that are set, in a fixed order."""
    out = {}
    for name in EXPORT_ORDER:
        value = getattr(rules, name)
        if isinstance(value, OffsetRule):
            offset = {k: getattr(value, k) for k in ("horizontal", "vertical", "position")}
            offset = {k: v for k, v in offset.items() if v is not None}
            if offset:
                out[name] = offset
        elif value is not None:
            out[name] = value
    return out


def rules_from_dict(data: dict) -> RuleSet:
    """Inverse of `rules_to_dict`. Accepts camelCase keys and ignores unknown ones."""
    data = {_camel_to_snake(k): v for k, v in data.items()}
    kwargs = {}
    for name in SCALAR_FIELDS:
        if data.get(name) is not None:
            kwargs[name] = data[name]
    for name in OFFSET_FIELDS:
        offset = data.get(name)
        if isinstance(offset, dict):
            kwargs[name] = OffsetRule(
                horizontal=offset.get("horizontal"),
                vertical=offset.get("vertical"),
                position=offset.get("position"),
            )

    ignored = set(data) - set(SCALAR_FIELDS) - set(OFFSET_FIELDS)
    if ignored:
        logger.debug("Ignoring unknown rule keys: %s", sorted(ignored))
    return RuleSet(**kwargs)


def rules_from_json(text: str) -> RuleSet:
    return rules_from_dict(json.loads(text))


def _python_literal(rules: RuleSet) -> str:
    lines = [
        "# Tree layout rules",
        "# From manual positioning",
        "",
        "TREE_LAYOUT_RULES = {",
    ]
    for name, value in rules_to_dict(rules).items():
        lines.append(f"    # {FIELD_COMMENTS[name]}")
        if isinstance(value, dict):
            lines.append(f'    "{name}": {{')
            for key, sub in value.items():
                lines.append(f'        "{key}": {sub!r},')
            lines.append("    },")
        else:
            lines.append(f'    "{name}": {value!r},')
    lines.append("}")
    return "\n".join(lines) + "\n"


def export_rules(rules: RuleSet, fmt: str = "python") -> str:
    """
    Serialise a rule set as JSON or as a Python literal for a config module.

    Both list the same set fields; unset fields are left out.
    """
    if fmt == "json":
        return json.dumps(rules_to_dict(rules), indent=2)
    if fmt == "python":
        return _python_literal(rules)
    raise ValueError(f"Unknown rule export format: {fmt!r}")


def _observed(current, stat):
    if current is not None or not stat.count:
        return current
    return stat.avg


def seed_rules(analysis, unit_report=None, base: RuleSet | None = None) -> RuleSet:
    """
    Fill the unset fields of `base` with observed averages.

    Stats without samples leave their field unset; values already in `base`
    are kept.
    """
    rules = base or RuleSet()
    updates = {}

    for name in ("generation_height", "sibling_spacing", "spouse_spacing"):
        stat = getattr(analysis, name)
        if getattr(rules, name) is None and stat.count:
            updates[name] = stat.avg

    for name, stats in (
        ("bastard_offset", analysis.bastard_offset),
        ("adopted_offset", analysis.adopted_offset),
    ):
        current = getattr(rules, name)
        offset = replace(
            current,
            horizontal=_observed(current.horizontal, stats.horizontal),
            vertical=_observed(current.vertical, stats.vertical),
        )
        if offset != current:
            updates[name] = offset

    if unit_report is not None and rules.family_unit_gap is None and unit_report.overall.count:
        updates["family_unit_gap"] = unit_report.overall.avg

    return replace(rules, **updates)
