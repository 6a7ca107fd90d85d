"""Data-quality warnings for people and relationships fed to the layout engine."""

import networkx as nx

from models import PARENT_TYPES, Person, Relationship, RelationshipType


def validate_relationships(people: list[Person], relationships: list[Relationship]) -> list[str]:
    """
    Check relationship records for:
    - Unknown relationship types and missing ids
    - Relationships of a person with themselves
    - Ids with no person record (treated as absent by the engine)
    - Cycles in parent-child relationships
    - Children with more than two recorded parents

    Returns a list of warning messages. Nothing here is fatal: the engine
    skips whatever it cannot use.
    """
    warnings: list[str] = []
    known = {p.id for p in people}
    parent_graph = nx.DiGraph()
    dangling: set = set()

    for rel in relationships:
        rel_type = RelationshipType.parse(rel.relationship_type)
        if rel_type is None:
            warnings.append(
                f"Unknown relationship type {rel.relationship_type!r} "
                f"between {rel.person1_id} and {rel.person2_id}"
            )
            continue
        if rel.person1_id is None or rel.person2_id is None:
            warnings.append(f"Relationship {rel_type.value} is missing a person id")
            continue
        if rel.person1_id == rel.person2_id:
            warnings.append(f"Person {rel.person1_id} has a {rel_type.value} relationship with themselves")
            continue

        dangling.update(pid for pid in (rel.person1_id, rel.person2_id) if pid not in known)
        if rel_type in PARENT_TYPES:
            parent_graph.add_edge(rel.person1_id, rel.person2_id)

    for pid in sorted(dangling, key=str):
        warnings.append(f"Relationship refers to unknown person {pid}")

    # Check for cycles
    try:
        cycle = nx.find_cycle(parent_graph, orientation="original")
        cycle_nodes = [edge[0] for edge in cycle]
        warnings.append(f"Cycle detected in parent-child relationships: {cycle_nodes}")
    except nx.NetworkXNoCycle:
        pass

    for child in parent_graph.nodes:
        parents = list(parent_graph.predecessors(child))
        if len(parents) > 2:
            warnings.append(f"Person {child} has {len(parents)} recorded parents")

    return warnings
