"""
1) Load people, relationships and (optionally) manual positions and rules
   from a JSON dataset or a GEDCOM file.
2) Validate the relationship data.
3) Analyse the manual positions for spacing patterns and family-unit gaps.
4) Seed the rule set from the observed averages where the dataset left it unset.
5) Synthesize positions for everyone connected to the anchor.
6) Compare manual and synthesized positions and print a report.
"""

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path

from analysis import SpacingStat, analyse_family_unit_gaps, analyse_layout_patterns
from comparison import compare_positions
from graph import build_relationship_index
from layout import calculate_rule_based_positions
from models import LayoutDefaults, Position
from parsing import load_dataset
from rules import export_rules, rules_from_json, seed_rules
from validation import validate_relationships


def format_stat(stat: SpacingStat) -> str:
    if not stat.count:
        return f"{stat.label}: no samples"
    return (
        f"{stat.label}: avg {stat.avg} (min {stat.min}, max {stat.max}, "
        f"n={stat.count}, consistency {stat.consistency}%)"
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyse and synthesize family-tree layouts.")
    parser.add_argument("dataset", type=Path, help="JSON dataset or GEDCOM file")
    parser.add_argument("--rules", type=Path, help="JSON rule file; overrides rules in the dataset")
    parser.add_argument("--anchor-id", help="Person placed at the anchor position")
    parser.add_argument("--anchor", type=float, nargs=2, metavar=("X", "Y"), default=(0.0, 0.0))
    parser.add_argument("--card-size", type=float, nargs=2, metavar=("W", "H"))
    parser.add_argument("--no-seed", action="store_true", help="Do not fill unset rules from analysis")
    parser.add_argument("--format", choices=("python", "json"), default="python")
    parser.add_argument("--output", type=Path, help="Write synthesized positions and rules as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def resolve_anchor_id(raw: str | None, people):
    if raw is None:
        return None
    for person in people:
        if str(person.id) == raw:
            return person.id
    return raw


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    defaults = LayoutDefaults()
    if args.card_size:
        defaults = replace(defaults, card_width=args.card_size[0], card_height=args.card_size[1])

    print(f"Loading dataset: {args.dataset}")
    dataset = load_dataset(args.dataset)
    rules = dataset.rules
    if args.rules:
        rules = rules_from_json(args.rules.read_text(encoding="utf-8"))
    print(
        f"  Found {len(dataset.people)} people, {len(dataset.relationships)} relationships "
        f"and {len(dataset.positions)} manual positions"
    )

    print("Validating relationships...")
    warnings = validate_relationships(dataset.people, dataset.relationships)
    if warnings:
        print(f"  Found {len(warnings)} validation warnings:")
        for w in warnings[:10]:
            print(f"    - {w}")
        if len(warnings) > 10:
            print(f"    ... and {len(warnings) - 10} more")
    else:
        print("  No validation issues found")

    index = build_relationship_index(dataset.relationships)

    print("Analysing manual positions...")
    analysis = analyse_layout_patterns(dataset.people, dataset.positions, index)
    units = analyse_family_unit_gaps(
        dataset.people,
        dataset.positions,
        index,
        rule_gap=rules.family_unit_gap,
        card_width=defaults.card_width,
        card_height=defaults.card_height,
    )
    for stat in (analysis.generation_height, analysis.sibling_spacing, analysis.spouse_spacing):
        print(f"  {format_stat(stat)}")
    for offsets in (analysis.bastard_offset, analysis.adopted_offset):
        print(f"  {format_stat(offsets.horizontal)}")
        print(f"  {format_stat(offsets.vertical)}")
    print(f"  {format_stat(units.overall)}")
    for category, stat in sorted(units.by_category.items()):
        print(f"    {category}: {format_stat(stat)}")
    for gap in units.overlaps:
        print(
            f"    Overlap of {-gap.gap} between units of parents "
            f"{gap.left.parents} and {gap.right.parents}"
        )
    for gap in units.below_rule:
        print(
            f"    Gap {gap.gap} is {-gap.margin} under the rule between units of parents "
            f"{gap.left.parents} and {gap.right.parents}"
        )

    if not args.no_seed:
        rules = seed_rules(analysis, units, base=rules)

    print("Synthesizing positions...")
    synthesized = calculate_rule_based_positions(
        dataset.people,
        index,
        rules,
        anchor=Position(*args.anchor),
        anchor_id=resolve_anchor_id(args.anchor_id, dataset.people),
        defaults=defaults,
    )
    missing = [p.id for p in dataset.people if p.id not in synthesized]
    print(f"  Placed {len(synthesized)} people")
    if missing:
        print(f"  {len(missing)} people are not connected to the anchor")

    comparison = compare_positions(dataset.positions, synthesized, defaults.difference_threshold)
    if comparison.match_ratio is not None:
        print(
            f"  {comparison.matched}/{comparison.compared} positions match "
            f"({comparison.match_ratio:.0%})"
        )
        for delta in comparison.mismatches[:10]:
            print(f"    - {delta.id}: dx {delta.delta_x:+g}, dy {delta.delta_y:+g}")

    print("Rules:")
    print(export_rules(rules, args.format))

    if args.output:
        payload = {
            "positions": {str(pid): {"x": p.x, "y": p.y} for pid, p in synthesized.items()},
            "rules": json.loads(export_rules(rules, "json")),
        }
        args.output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Output saved to {args.output}")

    print("Done!")


if __name__ == "__main__":
    main()
