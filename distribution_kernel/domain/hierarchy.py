"""
Location hierarchy (``distribution_kernel.domain.hierarchy``).

Responsibility
--------------
Pure, in-memory view of the HQ -> Branch -> SubBranch tree: ancestor,
descendant and breadcrumb walks, the access scope of a role, presentation
trees, and the structural rules every create/reparent must satisfy.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and functions.  ZERO I/O.
``LocationService`` and ``LocationSelector`` load ``LocationNode`` rows from
the database and hand them to ``LocationHierarchy``.

Representation
--------------
An arena: nodes keyed by id plus a parent -> children index, both built in
one pass.  Nodes never point at each other; every walk goes through the
index.  Walks carry a visited set and raise ``CorruptHierarchyError`` on a
cycle or a dangling parent_id rather than looping.

Invariants checked
------------------
* HQ has no parent; a Branch's parent is HQ; a SubBranch's parent is a Branch.
* A reparent target is never the node itself or one of its descendants.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from distribution_kernel.exceptions import (
    CorruptHierarchyError,
    InvalidHierarchyError,
    LocationNotFoundError,
)


class LocationType(str, Enum):
    """The three levels of the distribution network."""

    HQ = "HQ"
    BRANCH = "Branch"
    SUB_BRANCH = "SubBranch"


# Required parent type per location type (None = must be a root)
PARENT_TYPE: dict[LocationType, LocationType | None] = {
    LocationType.HQ: None,
    LocationType.BRANCH: LocationType.HQ,
    LocationType.SUB_BRANCH: LocationType.BRANCH,
}


class Role(str, Enum):
    """Caller roles that shape the visible location scope."""

    HQ_ADMIN = "HQ_Admin"
    BRANCH_MANAGER = "Branch_Manager"


@dataclass(frozen=True)
class LocationNode:
    """Immutable snapshot of one location row."""

    id: UUID
    name: str
    location_type: LocationType
    parent_id: UUID | None
    currency: str
    display_order: int = 0
    is_active: bool = True

    @property
    def is_hq(self) -> bool:
        return self.location_type == LocationType.HQ


@dataclass(frozen=True)
class LocationTreeNode:
    """Presentation node: a location and its ordered children."""

    location: LocationNode
    children: tuple[LocationTreeNode, ...] = ()


def _sibling_key(node: LocationNode) -> tuple[int, str, str]:
    return (node.display_order, node.name, str(node.id))


class LocationHierarchy:
    """
    Arena of location nodes with a parent -> children index.

    Contract:
        Built from any iterable of ``LocationNode`` (typically every row of
        the locations table).  All queries take ids and return nodes.

    Guarantees:
        - Sibling lists are ordered by (display_order, name, id).
        - Every walk terminates; bad data raises ``CorruptHierarchyError``.

    Non-goals:
        - Does not persist anything; see ``LocationService``.
    """

    def __init__(self, nodes: Iterable[LocationNode]):
        self._nodes: dict[UUID, LocationNode] = {}
        self._children: dict[UUID | None, list[UUID]] = {}
        for node in nodes:
            self._nodes[node.id] = node
            self._children.setdefault(node.parent_id, []).append(node.id)
        for child_ids in self._children.values():
            child_ids.sort(key=lambda cid: _sibling_key(self._nodes[cid]))

    def __contains__(self, location_id: object) -> bool:
        return location_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[LocationNode]:
        return iter(self._nodes.values())

    def get(self, location_id: UUID) -> LocationNode:
        """
        Raises:
            LocationNotFoundError: if the id is not in the arena.
        """
        node = self._nodes.get(location_id)
        if node is None:
            raise LocationNotFoundError(str(location_id))
        return node

    def root_ids(self) -> list[UUID]:
        """Ids whose parent is null or not part of this arena."""
        roots = [
            node for node in self._nodes.values()
            if node.parent_id is None or node.parent_id not in self._nodes
        ]
        return [node.id for node in sorted(roots, key=_sibling_key)]

    def direct_children(self, location_id: UUID) -> list[LocationNode]:
        self.get(location_id)
        return [self._nodes[cid] for cid in self._children.get(location_id, [])]

    # ------------------------------------------------------------------
    # Walks
    # ------------------------------------------------------------------

    def ancestors(self, location_id: UUID) -> list[LocationNode]:
        """
        Ancestors root-first, excluding the node itself.  Empty for HQ.

        Raises:
            LocationNotFoundError: unknown id.
            CorruptHierarchyError: a parent_id points nowhere or loops.
        """
        node = self.get(location_id)
        chain: list[LocationNode] = []
        visited = {node.id}
        parent_id = node.parent_id
        while parent_id is not None:
            if parent_id in visited:
                raise CorruptHierarchyError(str(parent_id), "cycle in parent chain")
            parent = self._nodes.get(parent_id)
            if parent is None:
                raise CorruptHierarchyError(
                    str(chain[-1].id if chain else node.id),
                    f"parent {parent_id} does not exist",
                )
            visited.add(parent_id)
            chain.append(parent)
            parent_id = parent.parent_id
        chain.reverse()
        return chain

    def descendants(self, location_id: UUID) -> list[LocationNode]:
        """
        Every node transitively under ``location_id``, pre-order, siblings
        by display order.  Depth is not assumed.

        Raises:
            LocationNotFoundError: unknown id.
            CorruptHierarchyError: a node is reached twice.
        """
        self.get(location_id)
        return self._walk(self._children.get(location_id, []), {location_id})

    def breadcrumbs(self, location_id: UUID) -> list[LocationNode]:
        """Ancestors plus the node itself, root-first."""
        return [*self.ancestors(location_id), self.get(location_id)]

    def depth(self, location_id: UUID) -> int:
        return len(self.ancestors(location_id))

    def is_ancestor(self, ancestor_id: UUID, location_id: UUID) -> bool:
        return any(a.id == ancestor_id for a in self.ancestors(location_id))

    def materialized_path(self, location_id: UUID) -> str:
        """Slash-separated id path from the root, e.g. ``/hq-id/branch-id``."""
        return "/" + "/".join(str(n.id) for n in self.breadcrumbs(location_id))

    def _walk(self, start_ids: list[UUID], visited: set[UUID]) -> list[LocationNode]:
        ordered: list[LocationNode] = []
        stack = list(reversed(start_ids))
        while stack:
            current = stack.pop()
            if current in visited:
                raise CorruptHierarchyError(str(current), "node reached twice")
            visited.add(current)
            ordered.append(self._nodes[current])
            stack.extend(reversed(self._children.get(current, [])))
        return ordered

    # ------------------------------------------------------------------
    # Scope and routing
    # ------------------------------------------------------------------

    def accessible_locations(
        self,
        role: Role | str,
        home_location_id: UUID | None,
    ) -> list[LocationNode]:
        """
        The set of locations a caller may see, in tree order.

        HQ_ADMIN: every active location.
        BRANCH_MANAGER: home plus all of its descendants.

        The caller still enforces the scope; this only computes it.
        """
        role = Role(role)
        if role == Role.HQ_ADMIN:
            visited: set[UUID] = set()
            top = sorted(
                (n for n in self._nodes.values() if n.parent_id is None),
                key=_sibling_key,
            )
            ordered = self._walk([n.id for n in top], visited)
            if len(visited) != len(self._nodes):
                stray = next(i for i in self._nodes if i not in visited)
                raise CorruptHierarchyError(str(stray), "unreachable from any root")
            return [n for n in ordered if n.is_active]
        if home_location_id is None:
            raise InvalidHierarchyError(None, "branch manager has no home location")
        return [self.get(home_location_id), *self.descendants(home_location_id)]

    def can_transfer_between(self, from_id: UUID, to_id: UUID) -> bool:
        """Stock moves only between a location and its direct parent or child."""
        if from_id == to_id:
            return False
        source = self.get(from_id)
        target = self.get(to_id)
        return source.parent_id == target.id or target.parent_id == source.id

    # ------------------------------------------------------------------
    # Structural rules
    # ------------------------------------------------------------------

    def validate_new_location(
        self,
        location_type: LocationType,
        parent_id: UUID | None,
    ) -> None:
        """
        Raises:
            InvalidHierarchyError: the parent/type pairing is not allowed.
            LocationNotFoundError: parent_id is unknown.
        """
        required = PARENT_TYPE[location_type]
        if required is None:
            if parent_id is not None:
                raise InvalidHierarchyError(None, "HQ cannot have a parent")
            if any(n.is_hq for n in self._nodes.values()):
                raise InvalidHierarchyError(None, "an HQ location already exists")
            return
        if parent_id is None:
            raise InvalidHierarchyError(
                None, f"{location_type.value} requires a {required.value} parent"
            )
        parent = self.get(parent_id)
        if parent.location_type != required:
            raise InvalidHierarchyError(
                None,
                f"{location_type.value} parent must be {required.value}, "
                f"got {parent.location_type.value}",
            )

    def validate_reparent(self, location_id: UUID, new_parent_id: UUID) -> None:
        """
        Only Branch and SubBranch nodes move, and never under themselves.

        Raises:
            InvalidHierarchyError: rule broken.
            LocationNotFoundError: either id unknown.
        """
        node = self.get(location_id)
        if node.is_hq:
            raise InvalidHierarchyError(str(location_id), "HQ cannot be reparented")
        if new_parent_id == location_id:
            raise InvalidHierarchyError(str(location_id), "cannot parent to itself")
        new_parent = self.get(new_parent_id)
        if any(d.id == new_parent_id for d in self.descendants(location_id)):
            raise InvalidHierarchyError(
                str(location_id), "new parent is a descendant of the location"
            )
        required = PARENT_TYPE[node.location_type]
        if new_parent.location_type != required:
            raise InvalidHierarchyError(
                str(location_id),
                f"{node.location_type.value} parent must be {required.value}, "
                f"got {new_parent.location_type.value}",
            )


def build_tree(locations: Iterable[LocationNode]) -> list[LocationTreeNode]:
    """
    Build a presentation forest from any subset of locations.

    Nodes whose parent is absent from ``locations`` become roots, so a
    branch manager's scope renders as a single tree under the branch.
    Siblings are ordered by display_order.

    Raises:
        CorruptHierarchyError: some nodes are unreachable from every root
            (a cycle).
    """
    arena = LocationHierarchy(locations)
    reached: set[UUID] = set()

    def _build(node_id: UUID) -> LocationTreeNode:
        if node_id in reached:
            raise CorruptHierarchyError(str(node_id), "node reached twice")
        reached.add(node_id)
        return LocationTreeNode(
            location=arena.get(node_id),
            children=tuple(
                _build(child.id) for child in arena.direct_children(node_id)
            ),
        )

    forest = [_build(root_id) for root_id in arena.root_ids()]
    if len(reached) != len(arena):
        stray = next(n.id for n in arena if n.id not in reached)
        raise CorruptHierarchyError(str(stray), "unreachable from any root")
    return forest
