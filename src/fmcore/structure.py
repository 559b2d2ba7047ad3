"""
Feature Tree Nodes

A FeatureStructure is the tree node of exactly one Feature. It stores the
group type of its children, the mandatory/hidden/concrete flags and the
parent/child links.

Group type is a pair of flags, not an enum:

    and    multiple   meaning
    True   False      AND (each child mandatory or optional)
    False  False      ALTERNATIVE (exactly one child)
    False  True       OR (at least one child)

INVARIANTS:
    - child.parent is node  <=>  child in node.children (exactly once)
    - node.parent_connection.target is node.parent.feature,
      or None for the root
    - set_parent() is the only method that touches connection bookkeeping
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator, List, Optional

from fmcore.errors import StructureError

if TYPE_CHECKING:
    from fmcore.factory import FeatureModelFactory
    from fmcore.model import Constraint, Feature, FeatureModel


CHILDREN_CHANGED = "CHILDREN_CHANGED"
HIDDEN_CHANGED = "HIDDEN_CHANGED"
MANDATORY_CHANGED = "MANDATORY_CHANGED"


@dataclass(frozen=True)
class PropertyChangeEvent:
    """
    Structural-change notification.

    Delivered synchronously, on the call stack of the mutation,
    to the listeners of the feature and then of its model.
    """

    source: Any
    property_name: str
    old_value: Any = False
    new_value: Any = True


class FeatureConnection:
    """
    The edge from a node to its parent.

    Owned by the child (its source). The parent only keeps a reference
    to it in its target connections.
    """

    def __init__(self, source: "Feature"):
        self.source = source
        self.target: Optional["Feature"] = None

    def __repr__(self) -> str:
        target = self.target.name if self.target is not None else None
        return f"FeatureConnection({self.source.name!r} -> {target!r})"


class FeatureStructure:
    """Tree node of a feature."""

    def __init__(self, feature: "Feature"):
        self.feature = feature

        self._mandatory = False
        self._concrete = True
        self._and = True
        self._multiple = False
        self._hidden = False

        self.children: List[FeatureStructure] = []
        self.parent: Optional[FeatureStructure] = None
        self.parent_connection = FeatureConnection(feature)
        self._source_connections = [self.parent_connection]
        self.target_connections: List[FeatureConnection] = []
        self.relevant_constraints: List["Constraint"] = []

    def __repr__(self) -> str:
        return f"FeatureStructure({self.feature.name!r})"

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def _check_new_child(self, new_child: FeatureStructure) -> None:
        if new_child is self or new_child.is_ancestor_of(self):
            raise StructureError(
                f"Cannot add {new_child.feature.name!r} below {self.feature.name!r}: "
                "a feature cannot be its own ancestor"
            )
        if new_child.parent is not None and new_child.parent is not self:
            new_child.parent.remove_child(new_child)
        elif new_child.parent is self:
            self.children.remove(new_child)

    def _add_new_child(self, new_child: FeatureStructure) -> None:
        self._check_new_child(new_child)
        self.children.append(new_child)
        new_child.set_parent(self)

    def add_child(self, new_child: FeatureStructure) -> None:
        self._add_new_child(new_child)
        self.fire_children_changed()

    def add_child_at_position(self, index: int, new_child: FeatureStructure) -> None:
        self._check_new_child(new_child)
        self.children.insert(index, new_child)
        new_child.set_parent(self)
        self.fire_children_changed()

    def remove_child(self, child: FeatureStructure) -> None:
        if child.parent is not self:
            raise StructureError(f"{child.feature.name!r} is not a child of {self.feature.name!r}")
        self.children.remove(child)
        child.set_parent(None)
        self.fire_children_changed()

    def remove_last_child(self) -> FeatureStructure:
        child = self.children.pop()
        child.set_parent(None)
        self.fire_children_changed()
        return child

    def replace_child(self, old_child: FeatureStructure, new_child: FeatureStructure) -> None:
        if old_child.parent is not self:
            raise StructureError(f"{old_child.feature.name!r} is not a child of {self.feature.name!r}")
        if new_child is not old_child:
            self._check_new_child(new_child)
        index = self.children.index(old_child)
        self.children[index] = new_child
        old_child.set_parent(None)
        new_child.set_parent(self)
        self.fire_children_changed()

    def set_children(self, children: List[FeatureStructure]) -> None:
        for child in list(self.children):
            self.children.remove(child)
            child.set_parent(None)
        for child in children:
            self._add_new_child(child)
        self.fire_children_changed()

    def get_child_index(self, child: FeatureStructure) -> int:
        """Position of child, or -1."""
        for index, candidate in enumerate(self.children):
            if candidate is child:
                return index
        return -1

    @property
    def children_count(self) -> int:
        return len(self.children)

    def has_children(self) -> bool:
        return bool(self.children)

    @property
    def first_child(self) -> Optional[FeatureStructure]:
        return self.children[0] if self.children else None

    @property
    def last_child(self) -> Optional[FeatureStructure]:
        return self.children[-1] if self.children else None

    def is_first_child(self, child: FeatureStructure) -> bool:
        return self.get_child_index(child) == 0

    def pre_order(self) -> Iterator[FeatureStructure]:
        """This node, then each child subtree in order."""
        yield self
        for child in self.children:
            yield from child.pre_order()

    # ------------------------------------------------------------------
    # Parent and connections
    # ------------------------------------------------------------------

    def set_parent(self, new_parent: Optional[FeatureStructure]) -> None:
        if new_parent is self.parent:
            return

        # delete old parent connection (if existing)
        if self.parent is not None:
            self.parent.remove_target_connection(self.parent_connection)
            self.parent_connection.target = None

        self.parent = new_parent
        if new_parent is not None:
            self.parent_connection.target = new_parent.feature
            new_parent.add_target_connection(self.parent_connection)

    def add_target_connection(self, connection: FeatureConnection) -> None:
        self.target_connections.append(connection)

    def remove_target_connection(self, connection: FeatureConnection) -> bool:
        for index, candidate in enumerate(self.target_connections):
            if candidate is connection:
                del self.target_connections[index]
                return True
        return False

    @property
    def source_connections(self) -> List[FeatureConnection]:
        return [] if self.parent is None else self._source_connections

    def is_root(self) -> bool:
        return self.parent is None

    def is_ancestor_of(self, other: FeatureStructure) -> bool:
        """True if this node lies strictly above other."""
        node = other.parent
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    # ------------------------------------------------------------------
    # Group type
    # ------------------------------------------------------------------

    def is_and(self) -> bool:
        return self._and

    def is_multiple(self) -> bool:
        return self._multiple

    def is_or(self) -> bool:
        return not self._and and self._multiple

    def is_alternative(self) -> bool:
        return not self._and and not self._multiple

    def set_and(self) -> None:
        self._and = True
        self._multiple = False

    def set_or(self) -> None:
        self._and = False
        self._multiple = True

    def set_alternative(self) -> None:
        self._and = False
        self._multiple = False

    def change_to_and(self) -> None:
        self.set_and()
        self.fire_children_changed()

    def change_to_or(self) -> None:
        self.set_or()
        self.fire_children_changed()

    def change_to_alternative(self) -> None:
        self.set_alternative()
        self.fire_children_changed()

    def set_and_flag(self, value: bool) -> None:
        self._and = value
        self.fire_children_changed()

    def set_multiple(self, value: bool) -> None:
        self._multiple = value
        self.fire_children_changed()

    def is_and_possible(self) -> bool:
        if self.parent is None or self.parent.is_and():
            return False
        return not any(child.is_and() for child in self.children)

    def is_or_possible(self) -> bool:
        return self.has_children() and not self.is_or()

    def is_alternative_possible(self) -> bool:
        return self.has_children() and not self.is_alternative()

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def is_mandatory(self) -> bool:
        """Effective status: the stored flag only counts below an AND parent."""
        return self.parent is None or not self.parent.is_and() or self._mandatory

    def is_mandatory_set(self) -> bool:
        return self._mandatory

    def set_mandatory(self, mandatory: bool) -> None:
        self._mandatory = mandatory
        self.fire_event(MANDATORY_CHANGED)

    def is_concrete(self) -> bool:
        return self._concrete

    def is_abstract(self) -> bool:
        return not self._concrete

    def set_abstract(self, value: bool) -> None:
        self._concrete = not value
        self.fire_children_changed()

    def is_hidden(self) -> bool:
        return self._hidden

    def set_hidden(self, hidden: bool) -> None:
        self._hidden = hidden
        self.fire_event(HIDDEN_CHANGED)

    def has_hidden_parent(self) -> bool:
        if self._hidden:
            return True
        if self.parent is None:
            return False
        node = self.parent
        while not node.is_root():
            if node.is_hidden():
                return True
            node = node.parent
        return False

    def has_inline_rule(self) -> bool:
        return len(self.children) > 1 and self._and and self.is_mandatory() and not self._multiple

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def set_relevant_constraints(self) -> None:
        """Recompute the constraints mentioning this feature from the model."""
        name = self.feature.name
        self.relevant_constraints = [
            constraint
            for constraint in self.feature.feature_model.constraints
            if name in constraint.contained_features()
        ]

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def clone_subtree(
        self,
        new_model: Optional["FeatureModel"] = None,
        factory: Optional["FeatureModelFactory"] = None,
    ) -> FeatureStructure:
        """
        Deep-copy this node and all descendants.

        With new_model, every feature is cloned into that model (through
        factory, if given) and registered there. Without it, the copy
        refers to the same features.

        Raises:
            StructureError: If new_model already has a feature of the same name
        """
        if new_model is not None:
            feature = self.feature.clone(new_model, factory)
            clone = feature.structure
            if not new_model.add_feature(feature):
                raise StructureError(f"Cannot clone {feature.name!r}: the target model already has a feature of that name")
        else:
            clone = FeatureStructure(self.feature)

        clone._mandatory = self._mandatory
        clone._concrete = self._concrete
        clone._and = self._and
        clone._multiple = self._multiple
        clone._hidden = self._hidden

        for child in self.children:
            clone._add_new_child(child.clone_subtree(new_model, factory))
        return clone

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def fire_event(self, property_name: str) -> None:
        self.feature.fire_event(PropertyChangeEvent(self, property_name, False, True))

    def fire_children_changed(self) -> None:
        self.fire_event(CHILDREN_CHANGED)
