"""NetworkX relationship index and immediate-family queries."""

import logging
from dataclasses import dataclass

import networkx as nx

from models import PARENT_TYPES, PersonId, Relationship, RelationshipType, id_sort_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiblingGroup:
    """Children sharing exactly the same recorded parents."""

    parents: tuple
    children: tuple


@dataclass(frozen=True)
class ImmediateFamily:
    person_id: PersonId
    parents: tuple
    children: tuple
    spouses: tuple
    siblings: tuple
    full_siblings: tuple
    half_siblings: tuple


class RelationshipIndex:
    """
    Read-only adjacency over parent/child and spouse relationships.

    Parent edges point parent -> child in `lineage`; spouse edges live in the
    undirected `marriages` graph. Neighbour lists keep the order in which the
    relationships were recorded.
    """

    def __init__(self, lineage: nx.DiGraph, marriages: nx.Graph):
        self.lineage = lineage
        self.marriages = marriages

    def parents_of(self, person_id: PersonId) -> list:
        if person_id not in self.lineage:
            return []
        return list(self.lineage.predecessors(person_id))

    def children_of(self, person_id: PersonId) -> list:
        if person_id not in self.lineage:
            return []
        return list(self.lineage.successors(person_id))

    def spouses_of(self, person_id: PersonId) -> list:
        if person_id not in self.marriages:
            return []
        return list(self.marriages.neighbors(person_id))

    def siblings_of(self, person_id: PersonId) -> list:
        """All other children sharing at least one parent with `person_id`."""
        siblings: dict = {}
        for parent in self.parents_of(person_id):
            for child in self.children_of(parent):
                if child != person_id:
                    siblings.setdefault(child)
        return list(siblings)

    def parent_set(self, person_id: PersonId) -> frozenset:
        return frozenset(self.parents_of(person_id))

    def sibling_groups(self) -> list[SiblingGroup]:
        """Full-sibling groups, ordered by their sorted parent ids."""
        grouped: dict[frozenset, list] = {}
        for child in self.lineage.nodes:
            parents = self.parent_set(child)
            if parents:
                grouped.setdefault(parents, []).append(child)

        groups = [
            SiblingGroup(tuple(sorted(parents, key=id_sort_key)), tuple(children))
            for parents, children in grouped.items()
        ]
        groups.sort(key=lambda g: [id_sort_key(p) for p in g.parents])
        return groups

    def descendants_of(self, person_id: PersonId) -> set:
        if person_id not in self.lineage:
            return set()
        return nx.descendants(self.lineage, person_id)

    def generation_levels(self) -> dict:
        """
        Longest parent-chain depth for every person in the lineage graph.

        People with no recorded parents are generation 0. A cycle in the parent
        relationships makes the levels approximate instead of failing.
        """
        try:
            order = list(nx.topological_sort(self.lineage))
        except nx.NetworkXUnfeasible:
            logger.warning("Parent relationships contain a cycle; generation levels are approximate")
            order = list(self.lineage.nodes)

        levels: dict = {}
        for node in order:
            parent_levels = [levels.get(p, 0) for p in self.lineage.predecessors(node)]
            levels[node] = 1 + max(parent_levels) if parent_levels else 0
        return levels

    def component_of(self, person_id: PersonId) -> set:
        """Everyone connected to `person_id` through parent or spouse links."""
        connected = nx.compose(self.lineage.to_undirected(), self.marriages)
        if person_id not in connected:
            return {person_id}
        return nx.node_connected_component(connected, person_id)


def build_relationship_index(relationships: list[Relationship]) -> RelationshipIndex:
    """
    Build the parent/child and spouse adjacency from flat relationship records.

    `parent`, `adopted-parent` and `foster-parent` all populate the lineage graph
    (person1 is the parent). `sibling` records are accepted but add nothing:
    siblings are always derived from shared parents. Records with a missing id,
    an unknown type, or the same person on both ends are skipped.
    """
    lineage = nx.DiGraph()
    marriages = nx.Graph()

    for rel in relationships:
        person1 = getattr(rel, "person1_id", None)
        person2 = getattr(rel, "person2_id", None)
        rel_type = RelationshipType.parse(getattr(rel, "relationship_type", None))

        if person1 is None or person2 is None or rel_type is None:
            logger.debug("Skipping malformed relationship: %r", rel)
            continue
        if person1 == person2:
            logger.debug("Skipping relationship of %r with itself", person1)
            continue

        if rel_type in PARENT_TYPES:
            lineage.add_edge(person1, person2, relationship_type=rel_type.value)
        elif rel_type is RelationshipType.SPOUSE:
            marriages.add_edge(person1, person2)

    return RelationshipIndex(lineage, marriages)


def resolve_immediate_family(person_id: PersonId, index: RelationshipIndex) -> ImmediateFamily:
    """Parents, children, spouses and siblings of one person, each de-duplicated."""
    parents = tuple(dict.fromkeys(index.parents_of(person_id)))
    siblings = tuple(s for s in index.siblings_of(person_id) if s != person_id)

    own_parents = frozenset(parents)
    full = tuple(s for s in siblings if index.parent_set(s) == own_parents)
    half = tuple(s for s in siblings if s not in full)

    return ImmediateFamily(
        person_id=person_id,
        parents=parents,
        children=tuple(dict.fromkeys(index.children_of(person_id))),
        spouses=tuple(dict.fromkeys(index.spouses_of(person_id))),
        siblings=siblings,
        full_siblings=full,
        half_siblings=half,
    )
