"""
Core Feature Model Objects

Defines the aggregate that owns a feature model:
    - Features (named units of variability)
    - Constraints (propositional cross-tree formulas)
    - UsedModels (imported external models)
    - FeatureModel (root container)

The tree itself lives in fmcore.structure; every Feature owns exactly
one FeatureStructure.

ARCHITECTURAL RULE:
    FeatureModel is mutated only through its methods. Methods that
    change the constraint set re-derive the relevant-constraint index
    of the features involved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional

from fmcore.attributes import FeatureAttribute
from fmcore.expressions import Node, get_contained_variables, node_to_string
from fmcore.problems import Problem, ProblemList
from fmcore.structure import FeatureStructure, PropertyChangeEvent

if TYPE_CHECKING:
    from fmcore.factory import FeatureModelFactory

logger = logging.getLogger(__name__)

Listener = Callable[[PropertyChangeEvent], None]


class Feature:
    """
    A named, optionally selectable unit of variability.

    Properties:
        name: Unique within the owning model
        feature_model: Owning model
        structure: Tree node of this feature
        description: Free-form text (may be empty)
        attributes: Typed attributes by name

    Abstract/concrete and hidden are stored on the structure.
    """

    def __init__(self, feature_model: Optional["FeatureModel"], name: str):
        self.feature_model = feature_model
        self.name = name
        self.description = ""
        self.attributes: Dict[str, FeatureAttribute] = {}
        self.structure = FeatureStructure(self)
        self._listeners: List[Listener] = []

    def __repr__(self) -> str:
        return f"Feature({self.name!r})"

    def is_abstract(self) -> bool:
        return self.structure.is_abstract()

    def clone(self, new_model: "FeatureModel", factory: Optional["FeatureModelFactory"] = None) -> "Feature":
        """
        Copy name, description and attributes into new_model (not registered).

        The copy is created by factory.create_feature if a factory is given.
        """
        if factory is not None:
            feature = factory.create_feature(new_model, self.name)
        else:
            feature = Feature(new_model, self.name)
        feature.description = self.description
        feature.attributes = {name: attr.clone() for name, attr in self.attributes.items()}
        return feature

    def add_attribute(self, attribute: FeatureAttribute) -> None:
        self.attributes[attribute.name] = attribute

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def fire_event(self, event: PropertyChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
        if self.feature_model is not None:
            self.feature_model.fire_event(event)


class Constraint:
    """
    A propositional formula attached to a feature model.

    Properties:
        feature_model: Owning model
        node: Root of the expression tree
        description: Optional free-form text
    """

    def __init__(self, feature_model: "FeatureModel", node: Node, description: str = ""):
        self.feature_model = feature_model
        self.node = node
        self.description = description

    def __repr__(self) -> str:
        return f"Constraint({node_to_string(self.node)})"

    def contained_features(self) -> set:
        return get_contained_variables(self.node)


@dataclass
class UsedModel:
    """
    An imported external model.

    The core only records the import; loading the model is left to
    whoever consumes it.

    Properties:
        alias: Name used in references ("eng" in eng.Turbo)
        namespace: Declared namespace ("sub.Engines")
        path: Expected location of the imported file, if the
              importing model has a source path
    """

    alias: str
    namespace: str
    path: Optional[Path] = None


@dataclass
class FeatureModel:
    """
    Root container for a feature model.

    Properties:
        factory_id: Id of the factory that creates objects for this model
        source_path: Where the model was read from (optional)
        features: All features by name, in registration order
        constraints: Ordered cross-tree constraints
        external_models: Imports by alias

    INVARIANTS:
        - Feature names are unique
        - Every tree node reachable from root belongs to a registered feature
        - Constraint literals name registered features
      (check_consistency() reports violations)
    """

    factory_id: str = ""
    source_path: Optional[Path] = None
    features: Dict[str, Feature] = field(default_factory=dict)
    constraints: List[Constraint] = field(default_factory=list)
    external_models: Dict[str, UsedModel] = field(default_factory=dict)
    _root: Optional[FeatureStructure] = field(default=None, init=False, compare=False, repr=False)
    _listeners: List[Listener] = field(default_factory=list, init=False, compare=False, repr=False)

    @property
    def root(self) -> Optional[FeatureStructure]:
        return self._root

    def set_root(self, root: FeatureStructure) -> None:
        if root.parent is not None:
            root.parent.remove_child(root)
        self._root = root

    def reset(self) -> None:
        """Drop all content; the source path is kept."""
        self.features.clear()
        self.constraints.clear()
        self.external_models.clear()
        self._root = None

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def add_feature(self, feature: Feature) -> bool:
        """Register a feature. Returns False if the name is taken."""
        if feature.name in self.features:
            return False
        self.features[feature.name] = feature
        return True

    def get_feature(self, name: str) -> Optional[Feature]:
        return self.features.get(name)

    def delete_feature(self, feature: Feature) -> bool:
        """
        Remove a non-root feature; its children move up to its parent.

        Returns False for the root or for features not in this model.
        """
        if self.features.get(feature.name) is not feature:
            return False
        structure = feature.structure
        parent = structure.parent
        if parent is None:
            return False
        index = parent.get_child_index(structure)
        for child in list(structure.children):
            parent.add_child_at_position(index, child)
            index += 1
        parent.remove_child(structure)
        del self.features[feature.name]
        return True

    def pre_order(self) -> Iterator[Feature]:
        """Features of the tree, parents before children."""
        if self._root is None:
            return
        for structure in self._root.pre_order():
            yield structure.feature

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def add_constraint(self, constraint: Constraint, index: Optional[int] = None) -> None:
        if index is None:
            self.constraints.append(constraint)
        else:
            self.constraints.insert(index, constraint)
        self._refresh_relevant_constraints(constraint)

    def remove_constraint(self, constraint: Constraint) -> None:
        self.constraints.remove(constraint)
        self._refresh_relevant_constraints(constraint)

    def _refresh_relevant_constraints(self, constraint: Constraint) -> None:
        for name in constraint.contained_features():
            feature = self.features.get(name)
            if feature is not None:
                feature.structure.set_relevant_constraints()

    def update_relevant_constraints(self) -> None:
        """Re-derive the relevant-constraint index of every feature."""
        for feature in self.features.values():
            feature.structure.set_relevant_constraints()

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def add_instance(self, alias: str, namespace: str) -> UsedModel:
        """Record an imported model; its path is resolved next to source_path."""
        path = None
        if self.source_path is not None:
            path = Path(self.source_path).parent.joinpath(*namespace.split(".")).with_suffix(".uvl")
        used = UsedModel(alias=alias, namespace=namespace, path=path)
        self.external_models[alias] = used
        return used

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def fire_event(self, event: PropertyChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def check_consistency(self) -> ProblemList:
        """
        Check tree and constraint invariants.

        Returns:
            ProblemList with one ERROR per violation (empty if consistent)
        """
        problems = ProblemList()

        if self._root is not None:
            if self._root.parent_connection.target is not None:
                problems.append(Problem(f"Root {self._root.feature.name!r} has a parent connection"))
            for node in self._root.pre_order():
                feature = node.feature
                if self.features.get(feature.name) is not feature:
                    problems.append(Problem(f"Feature {feature.name!r} is not registered in the model"))
                for child in node.children:
                    if child.parent is not node:
                        problems.append(Problem(
                            f"{child.feature.name!r} is listed below {feature.name!r} but points to another parent"
                        ))
                    if sum(1 for c in node.children if c is child) != 1:
                        problems.append(Problem(f"{child.feature.name!r} is listed twice below {feature.name!r}"))
                    if child.parent_connection.target is not feature:
                        problems.append(Problem(f"Parent connection of {child.feature.name!r} does not target {feature.name!r}"))

        for constraint in self.constraints:
            for name in sorted(constraint.contained_features()):
                if name not in self.features:
                    problems.append(Problem(f"Constraint {node_to_string(constraint.node)} references unknown feature {name!r}"))

        if problems:
            logger.debug("Model consistency check found %d problem(s)", len(problems))
        return problems
