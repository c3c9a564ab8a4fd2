"""Flat, id-keyed view of a diagram's threat and consequence hierarchies.

A diagram may express hierarchy two ways: nested ``sub_threats`` /
``sub_consequences`` lists, or flat ``parent_id`` pointers. Both are folded
into one canonical representation here: a flat list of elements with parent
pointers (nested children get ``parent_id`` filled in from their container).
Children-by-parent views are derived from that list on demand.
"""
from typing import Generic, Iterator, Optional, TypeVar, Union

from .bowtie import Barrier, BowtieDiagram, Consequence, Threat

Element = Union[Threat, Consequence]
E = TypeVar("E", Threat, Consequence)


def _nested(element: Element) -> list:
    if isinstance(element, Threat):
        return element.sub_threats
    return element.sub_consequences


def flatten_hierarchy(elements: list[E]) -> list[E]:
    """Depth-first flattening of nested elements.

    Every returned element is a copy with its nested list cleared; nested
    children without an explicit ``parent_id`` get their container's id.
    Duplicates are kept so the validator can report them.
    """
    flat: list[E] = []

    def visit(items: list[E], container: Optional[E]) -> None:
        for item in items:
            update: dict = {"sub_threats": []} if isinstance(item, Threat) else {"sub_consequences": []}
            if container is not None and not item.parent_id:
                update["parent_id"] = container.id
            flat.append(item.model_copy(update=update))
            visit(_nested(item), item)

    visit(elements, None)
    return flat


def iter_nesting_conflicts(elements: list[E]) -> Iterator[tuple[E, E]]:
    """Yield ``(child, container)`` pairs whose explicit parent_id disagrees with nesting."""
    for container in elements:
        for child in _nested(container):
            if child.parent_id and child.parent_id != container.id:
                yield child, container
        yield from iter_nesting_conflicts(_nested(container))


class Hierarchy(Generic[E]):
    """One side of the bow-tie (threats or consequences) keyed by id."""

    def __init__(self, elements: list[E]):
        self.elements: list[E] = flatten_hierarchy(elements)
        self.by_id: dict[str, E] = {}
        for element in self.elements:
            # first registration wins; duplicates are a validation concern
            self.by_id.setdefault(element.id, element)

    def __contains__(self, element_id: object) -> bool:
        return element_id in self.by_id

    def __len__(self) -> int:
        return len(self.elements)

    def get(self, element_id: Optional[str]) -> Optional[E]:
        if not element_id:
            return None
        return self.by_id.get(element_id)

    def children_of(self, parent_id: str) -> list[E]:
        return [e for e in self.elements if e.parent_id == parent_id]

    def roots(self) -> list[E]:
        """Elements with no parent, or whose parent does not exist."""
        return [e for e in self.elements if not e.parent_id or e.parent_id not in self.by_id]

    def is_connected(self, element: Optional[E]) -> bool:
        """Whether walking parent links from *element* reaches a root without revisiting an id."""
        visited: set[str] = set()
        current = element
        while current is not None:
            if current.id in visited:
                return False
            visited.add(current.id)
            if not current.parent_id:
                return True
            current = self.by_id.get(current.parent_id)
        return False


class DiagramIndex:
    """Lookup tables derived once per diagram."""

    def __init__(self, diagram: BowtieDiagram):
        self.diagram = diagram
        self.threats: Hierarchy[Threat] = Hierarchy(diagram.threats)
        self.consequences: Hierarchy[Consequence] = Hierarchy(diagram.consequences)
        self.barriers: dict[str, Barrier] = {}
        for barrier in diagram.barriers:
            self.barriers.setdefault(barrier.id, barrier)

    def preventive_barriers(self, threat_id: str) -> list[Barrier]:
        return [
            b for b in self.barriers.values()
            if b.type == "preventive" and b.threat_id == threat_id
        ]

    def mitigative_barriers(self, consequence_id: str) -> list[Barrier]:
        return [
            b for b in self.barriers.values()
            if b.type == "mitigative" and b.consequence_id == consequence_id
        ]
