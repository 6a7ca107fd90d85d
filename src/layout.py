"""
Rule-based family-tree layout.

Places every person connected to a root from a RuleSet alone, without manual
input. The layout is built top-down in blocks: the root with their spouses,
then one block per full-sibling group, one generation row below the parents.
A post-pass pushes neighbouring blocks apart so their whole subtrees keep at
least the family-unit gap between them.

Two ambiguities are settled by fixed policies:

- Spouse side: a spouse goes to the right of their partner, to the left when
  the right slot is taken, and past the end of the row when both are.
- First visit wins: someone reachable by several paths (for example through
  two marriages) is placed once, by the first path in traversal order.
"""

import logging
import statistics
from dataclasses import dataclass, field

from graph import RelationshipIndex
from models import (
    OFFSET_RULE_BY_STATUS,
    BoundingBox,
    LayoutDefaults,
    Person,
    PersonId,
    Position,
    RuleSet,
    id_sort_key,
    person_sort_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRules:
    """A RuleSet with every gap filled from the defaults."""

    generation_height: float
    sibling_spacing: float
    spouse_spacing: float
    family_unit_gap: float
    offsets: dict  # LegitimacyStatus -> (horizontal, vertical, at_end)


def _spacing(value, default: float, name: str) -> float:
    if value is None:
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s %r; using %r", name, value, default)
        return default
    return value


def resolve_rules(rules: RuleSet, defaults: LayoutDefaults = LayoutDefaults()) -> ResolvedRules:
    offsets = {}
    for status in OFFSET_RULE_BY_STATUS:
        rule = rules.offset_for(status)
        offsets[status] = (
            defaults.offset_horizontal if rule.horizontal is None else rule.horizontal,
            defaults.offset_vertical if rule.vertical is None else rule.vertical,
            rule.position == "end",
        )

    return ResolvedRules(
        generation_height=_spacing(rules.generation_height, defaults.generation_height, "generation height"),
        sibling_spacing=_spacing(rules.sibling_spacing, defaults.sibling_spacing, "sibling spacing"),
        spouse_spacing=_spacing(rules.spouse_spacing, defaults.spouse_spacing, "spouse spacing"),
        family_unit_gap=_spacing(rules.family_unit_gap, defaults.family_unit_gap, "family unit gap"),
        offsets=offsets,
    )


@dataclass(eq=False)
class _Block:
    order: int
    generation: int
    parent: "_Block | None"
    members: list = field(default_factory=list)
    children: list = field(default_factory=list)


class _LayoutRun:
    """Mutable working state for a single layout call."""

    def __init__(
        self,
        people: list[Person],
        index: RelationshipIndex,
        rules: ResolvedRules,
        defaults: LayoutDefaults,
    ):
        self.people = {p.id: p for p in people}
        self.index = index
        self.rules = rules
        self.defaults = defaults

        self.pos: dict = {}
        self.block_of: dict = {}
        self.blocks: list[_Block] = []
        self.expanded_groups: set = set()

    # ------------------------------------------------------------------
    # Root selection
    # ------------------------------------------------------------------

    def known_parents(self, person_id: PersonId) -> list:
        return [p for p in self.index.parents_of(person_id) if p in self.people]

    def choose_root(self, anchor_id: PersonId | None) -> PersonId:
        if anchor_id is not None:
            if anchor_id in self.people:
                return anchor_id
            logger.warning("Anchor person %r not found; choosing a root instead", anchor_id)

        known = set(self.people)
        roots = [p for p in self.people.values() if not self.known_parents(p.id)]
        if not roots:
            logger.warning("Every person has recorded parents; rooting at the first person")
            roots = list(self.people.values())

        root = min(
            roots,
            key=lambda p: (-len(self.index.descendants_of(p.id) & known), person_sort_key(p)),
        )
        return root.id

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def new_block(self, generation: int, parent: _Block | None) -> _Block:
        block = _Block(order=len(self.blocks), generation=generation, parent=parent)
        self.blocks.append(block)
        if parent is not None:
            parent.children.append(block)
        return block

    def place(self, person_id: PersonId, position: Position, block: _Block):
        self.pos[person_id] = position
        self.block_of[person_id] = block
        block.members.append(person_id)

    def occupied(self, block: _Block, x: float, y: float, clearance: float) -> bool:
        return any(
            abs(self.pos[m].x - x) < clearance and abs(self.pos[m].y - y) < self.defaults.card_height
            for m in block.members
        )

    def spouse_slot(self, partner: PersonId, block: _Block) -> Position:
        here = self.pos[partner]
        step = self.rules.spouse_spacing
        clearance = min(self.defaults.card_width, step)

        for x in (here.x + step, here.x - step):
            if not self.occupied(block, x, here.y, clearance):
                return Position(x, here.y)

        rightmost = max(self.pos[m].x for m in block.members)
        return Position(rightmost + step, here.y)

    def place_spouses(self, block: _Block):
        """Place unplaced spouses of every block member, including spouses of spouses."""
        queue = list(block.members)
        while queue:
            person_id = queue.pop(0)
            for spouse_id in self.index.spouses_of(person_id):
                if spouse_id in self.pos or spouse_id not in self.people:
                    continue
                self.place(spouse_id, self.spouse_slot(person_id, block), block)
                queue.append(spouse_id)

    def child_groups(self, person_id: PersonId) -> list:
        """Children of one person grouped by full parent set, spouse families first."""
        grouped: dict[frozenset, list] = {}
        for child in self.index.children_of(person_id):
            if child in self.people:
                grouped.setdefault(self.index.parent_set(child), []).append(child)

        spouse_rank = {s: i for i, s in enumerate(self.index.spouses_of(person_id))}

        def rank(parents: frozenset):
            partners = [spouse_rank[p] for p in parents if p in spouse_rank]
            return (
                min(partners) if partners else len(spouse_rank),
                sorted(id_sort_key(p) for p in parents),
            )

        return [(parents, grouped[parents]) for parents in sorted(grouped, key=rank)]

    def slot_order(self, children: list) -> list:
        ordered = sorted(children, key=lambda c: person_sort_key(self.people[c]))

        def at_end(child):
            offset = self.rules.offsets.get(self.people[child].legitimacy_status)
            return offset is not None and offset[2]

        return [c for c in ordered if not at_end(c)] + [c for c in ordered if at_end(c)]

    def place_sibling_group(self, via: PersonId, parents: frozenset, children: list) -> _Block | None:
        unplaced = [c for c in children if c not in self.pos]
        if not unplaced:
            return None

        parent_block = self.block_of[via]
        centre_x = statistics.fmean(
            self.pos[p].x for p in parents if self.block_of.get(p) is parent_block
        )
        y = self.pos[via].y + self.rules.generation_height
        pitch = self.rules.sibling_spacing
        start_x = centre_x - (len(unplaced) - 1) * pitch / 2

        block = self.new_block(parent_block.generation + 1, parent_block)
        for slot, child in enumerate(self.slot_order(unplaced)):
            dx, dy = 0, 0
            offset = self.rules.offsets.get(self.people[child].legitimacy_status)
            if offset is not None:
                dx, dy = offset[0], offset[1]
            self.place(child, Position(start_x + slot * pitch + dx, y + dy), block)

        self.place_spouses(block)
        return block

    def expand(self, block: _Block):
        """Depth-first: lay out each member's child groups, then theirs."""
        for person_id in list(block.members):
            for parents, children in self.child_groups(person_id):
                if parents in self.expanded_groups:
                    continue
                self.expanded_groups.add(parents)
                child_block = self.place_sibling_group(person_id, parents, children)
                if child_block is not None:
                    self.expand(child_block)

    def place_root(self, root: PersonId):
        block = self.new_block(generation=0, parent=None)
        self.place(root, Position(0, 0), block)
        self.place_spouses(block)
        self.expand(block)

    def place_ancestors(self, component: set):
        """Reach upward: parents of placed people get their own top-level block."""
        while True:
            pending = [
                p
                for p in component
                if p in self.people
                and p not in self.pos
                and any(c in self.pos for c in self.index.children_of(p))
            ]
            if not pending:
                return

            person_id = min(pending, key=lambda p: person_sort_key(self.people[p]))
            placed_children = [c for c in self.index.children_of(person_id) if c in self.pos]
            highest = min(
                placed_children, key=lambda c: (self.block_of[c].generation, id_sort_key(c))
            )

            right_edge = max(p.x for p in self.pos.values()) + self.defaults.card_width
            block = self.new_block(self.block_of[highest].generation - 1, parent=None)
            self.place(
                person_id,
                Position(
                    right_edge + self.rules.family_unit_gap,
                    self.pos[highest].y - self.rules.generation_height,
                ),
                block,
            )
            self.place_spouses(block)
            self.expand(block)

    # ------------------------------------------------------------------
    # Family-unit separation
    # ------------------------------------------------------------------

    def subtree_members(self, block: _Block) -> list:
        members = list(block.members)
        for child in block.children:
            members.extend(self.subtree_members(child))
        return members

    def subtree_bounds(self, block: _Block) -> BoundingBox:
        return BoundingBox.around(
            (self.pos[m] for m in self.subtree_members(block)),
            self.defaults.card_width,
            self.defaults.card_height,
        )

    def shift(self, block: _Block, dx: float):
        for member in self.subtree_members(block):
            self.pos[member] = self.pos[member].shifted(dx=dx)

    def spread(self, blocks: list):
        """
        Push blocks apart until neighbouring subtrees clear the family-unit gap.

        The widest subtree stays where it is; blocks to its right only move
        right and blocks to its left only move left, so existing wider gaps are
        never narrowed.
        """
        if len(blocks) < 2:
            return

        gap = self.rules.family_unit_gap
        row = sorted(blocks, key=lambda b: (self.subtree_bounds(b).min_x, b.order))
        widths = [self.subtree_bounds(b).width for b in row]
        pivot = max(range(len(row)), key=lambda i: (widths[i], -i))

        for i in range(pivot + 1, len(row)):
            needed = self.subtree_bounds(row[i - 1]).max_x + gap - self.subtree_bounds(row[i]).min_x
            if needed > 0:
                self.shift(row[i], needed)

        for i in range(pivot - 1, -1, -1):
            needed = self.subtree_bounds(row[i]).max_x + gap - self.subtree_bounds(row[i + 1]).min_x
            if needed > 0:
                self.shift(row[i], -needed)

    def separate_family_units(self):
        rows: dict[int, list] = {}
        for block in self.blocks:
            if block.parent is not None:
                rows.setdefault(block.generation, []).append(block)

        # Deepest row first so a parent row sees its children's final extent
        for generation in sorted(rows, reverse=True):
            self.spread(rows[generation])

        self.spread([b for b in self.blocks if b.parent is None])


def calculate_rule_based_positions(
    people: list[Person],
    index: RelationshipIndex,
    rules: RuleSet | None = None,
    anchor: Position = Position(0, 0),
    anchor_id: PersonId | None = None,
    defaults: LayoutDefaults = LayoutDefaults(),
) -> dict:
    """
    Compute a position for everyone connected to the root from rules alone.

    Args:
        people: Person records; relationship ids without a record are ignored
        index: Relationship index built from the same dataset
        rules: Spacing rules; unset fields fall back to `defaults`
        anchor: Where the root person's card is placed
        anchor_id: The root person; by default the parentless person with the
            most descendants
        defaults: Default metrics and card size

    Returns:
        A new {person_id: Position} map. People not connected to the root are
        left out, so callers can find them by comparing key sets.
    """
    if not people:
        return {}

    run = _LayoutRun(people, index, resolve_rules(rules or RuleSet(), defaults), defaults)
    root = run.choose_root(anchor_id)

    run.place_root(root)
    run.place_ancestors(index.component_of(root))
    run.separate_family_units()

    origin = run.pos[root]
    dx, dy = anchor.x - origin.x, anchor.y - origin.y
    positions = {person_id: p.shifted(dx, dy) for person_id, p in run.pos.items()}

    omitted = len(run.people) - len(positions)
    if omitted:
        logger.debug("%d people are not connected to root %r and were left out", omitted, root)
    logger.debug("Placed %d people from root %r", len(positions), root)
    return positions
