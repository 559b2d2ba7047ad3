"""
UVL Reader (Layer 2: UVL syntax tree → FeatureModel).

Builds a FeatureModel from UVL text. Syntax errors, unresolvable
references, duplicate names and unknown group types are reported in the
returned ProblemList; read() never raises for problems in the document.

Construction rules:
    - One root declaration becomes the root feature. Zero or several
      are wrapped in a synthetic root named "Root".
    - Features are built pre-order; a group's type is applied after its
      children are built.
    - Group keywords: or, alternative, optional, mandatory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from fmcore.attributes import create_attribute
from fmcore.errors import UnsupportedOperationError
from fmcore.expressions import And, Equals, Implies, Literal, Node, Not, Or
from fmcore.factory import DEFAULT_FACTORY, FactoryManager, FeatureModelFactory
from fmcore.model import Feature, FeatureModel
from fmcore.problems import Problem, ProblemList, Severity
from fmcore.uvl_parser import (
    BinaryExpr,
    ConstraintExpr,
    FeatureResolver,
    ImportLoader,
    NotExpr,
    ResolutionError,
    UVLDocument,
    UVLFeature,
    UVLGroup,
    UVLParseError,
    parse,
)

logger = logging.getLogger(__name__)

SYNTHETIC_ROOT_NAME = "Root"
FILE_EXTENSION = "uvl"

_BINARY_NODES = {
    "and": And,
    "or": Or,
    "implies": Implies,
    "equivalence": Equals,
}


def translate_constraint(expr: ConstraintExpr) -> Node:
    """Map a syntax-level constraint onto the propositional node types."""
    if isinstance(expr, str):
        return Literal(expr)
    if isinstance(expr, NotExpr):
        return Not(translate_constraint(expr.child))
    if isinstance(expr, BinaryExpr):
        node_type = _BINARY_NODES.get(expr.op)
        if node_type is None:
            raise TypeError(f"Unsupported constraint operator: {expr.op}")
        return node_type(left=translate_constraint(expr.left), right=translate_constraint(expr.right))
    raise TypeError(f"Unsupported constraint expression: {type(expr)}")


class UVLFeatureModelFormat:
    """
    Reads UVL documents into feature models.

    Args:
        manager: Factory registry (a registry holding the default factory if None)
        fallback: Factory used when the model's factory id is not registered;
                  None makes an unknown id an error
        import_loader: Optional collaborator that provides imported documents
                       for resolving alias.Name references
    """

    ID = "fmcore.format.fm.UVLFeatureModelFormat"
    NAME = "UVL"

    def __init__(
        self,
        manager: Optional[FactoryManager] = None,
        fallback: Optional[FeatureModelFactory] = DEFAULT_FACTORY,
        import_loader: Optional[ImportLoader] = None,
    ):
        self.manager = manager or FactoryManager()
        self.fallback = fallback
        self.import_loader = import_loader

    @property
    def suffix(self) -> str:
        return FILE_EXTENSION

    def supports_read(self) -> bool:
        return True

    def supports_write(self) -> bool:
        return False

    def write(self, feature_model: FeatureModel) -> str:
        raise UnsupportedOperationError("Writing UVL is not supported")

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read(self, feature_model: FeatureModel, source: str, path: Union[str, Path, None] = None) -> ProblemList:
        """
        Replace the content of feature_model with the model described by source.

        Args:
            feature_model: Target model (reset on successful parse)
            source: Complete UVL text
            path: Location of the source; used for resolving import paths only

        Returns:
            ProblemList (empty on full success)
        """
        if path is not None:
            feature_model.source_path = Path(path)
        problems = ProblemList()

        try:
            document = parse(source)
        except UVLParseError as e:
            problems.append(Problem(e.describe(), e.line, Severity.ERROR, e.column))
            return problems

        _ModelBuilder(
            feature_model,
            document,
            self.manager.get_factory_for(feature_model, self.fallback),
            FeatureResolver(document, self.import_loader),
            problems,
        ).build()
        return problems


class _ModelBuilder:
    """Translates one parsed document into one feature model."""

    def __init__(
        self,
        feature_model: FeatureModel,
        document: UVLDocument,
        factory: FeatureModelFactory,
        resolver: FeatureResolver,
        problems: ProblemList,
    ):
        self.feature_model = feature_model
        self.document = document
        self.factory = factory
        self.resolver = resolver
        self.problems = problems

    def build(self) -> None:
        fm = self.feature_model
        fm.reset()

        roots = self.document.root_features
        if len(roots) == 1:
            root = self._parse_feature(None, roots[0])
        else:
            root = self.factory.create_feature(fm, SYNTHETIC_ROOT_NAME)
            fm.add_feature(root)
            for declared in roots:
                self._parse_feature(root, declared)
        if root is not None:
            fm.set_root(root.structure)

        for expr in self.document.constraints:
            fm.add_constraint(self.factory.create_constraint(fm, translate_constraint(expr)))

        for uvl_import in self.document.imports:
            fm.add_instance(uvl_import.alias, uvl_import.namespace)

        logger.debug(
            "Built feature model: %d feature(s), %d constraint(s), %d problem(s)",
            len(fm.features),
            len(fm.constraints),
            len(self.problems),
        )

    def _parse_feature(self, parent: Optional[Feature], declared: UVLFeature) -> Optional[Feature]:
        try:
            resolved = self.resolver.resolve(declared)
        except ResolutionError as e:
            self.problems.append(Problem(str(e), e.line or declared.line, Severity.ERROR))
            resolved = declared

        fm = self.feature_model
        feature = self.factory.create_feature(fm, resolved.name)
        if not fm.add_feature(feature):
            self.problems.append(Problem(
                f"Duplicate feature name {resolved.name!r}; declaration ignored",
                declared.line,
                Severity.ERROR,
            ))
            return None

        if parent is not None:
            parent.structure.add_child(feature.structure)
        self._apply_attributes(feature, resolved)

        for group in resolved.groups:
            self._parse_group(feature, group)
        return feature

    def _apply_attributes(self, feature: Feature, declared: UVLFeature) -> None:
        for key, value in declared.attributes.items():
            if key == "abstract":
                feature.structure.set_abstract(value is True)
            elif key == "hidden":
                feature.structure.set_hidden(value is True)
            elif key == "description" and isinstance(value, str):
                feature.description = value
            elif isinstance(value, (bool, int, float, str)):
                feature.add_attribute(create_attribute(key, value))
            else:
                feature.add_attribute(create_attribute(key, _attribute_text(value)))

    def _parse_group(self, feature: Feature, group: UVLGroup) -> None:
        children: List[Feature] = []
        for declared in group.children:
            child = self._parse_feature(feature, declared)
            if child is not None:
                children.append(child)

        structure = feature.structure
        if group.type == "or":
            structure.set_or()
        elif group.type == "alternative":
            structure.set_alternative()
        elif group.type == "optional":
            pass
        elif group.type == "mandatory":
            for child in children:
                child.structure.set_mandatory(True)
        else:
            self.problems.append(Problem(
                f"Unsupported group type {_group_label(group)!r} below {feature.name!r}; "
                "children are kept as optional",
                group.line,
                Severity.WARNING,
            ))


def _group_label(group: UVLGroup) -> str:
    if group.cardinality is None:
        return group.type
    lower, upper = group.cardinality
    return f"[{lower}..{'*' if upper is None else upper}]"


def _attribute_text(value: object) -> str:
    if isinstance(value, dict):
        return "{" + ", ".join(f"{k} {_attribute_text(v)}" for k, v in value.items()) + "}"
    if isinstance(value, list):
        return "[" + ", ".join(_attribute_text(v) for v in value) + "]"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f"'{value}'"
    return str(value)


# =============================================================================
# Convenience entry points
# =============================================================================


def read_uvl_string(
    source: str,
    path: Union[str, Path, None] = None,
    factory: FeatureModelFactory = DEFAULT_FACTORY,
    import_loader: Optional[ImportLoader] = None,
) -> Tuple[FeatureModel, ProblemList]:
    """
    Parse UVL text into a new feature model.

    Returns:
        (FeatureModel, ProblemList)
    """
    feature_model = factory.create_feature_model()
    uvl_format = UVLFeatureModelFormat(
        manager=FactoryManager([factory]),
        fallback=factory,
        import_loader=import_loader,
    )
    problems = uvl_format.read(feature_model, source, path)
    return feature_model, problems


def read_uvl_file(
    filepath: Union[str, Path],
    factory: FeatureModelFactory = DEFAULT_FACTORY,
    import_loader: Optional[ImportLoader] = None,
) -> Tuple[FeatureModel, ProblemList]:
    """
    Read a UVL file into a new feature model.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    with open(filepath, "r", encoding="utf-8") as f:
        content = f.read()
    return read_uvl_string(content, path=filepath, factory=factory, import_loader=import_loader)


__all__ = [
    "UVLFeatureModelFormat",
    "read_uvl_string",
    "read_uvl_file",
    "translate_constraint",
    "SYNTHETIC_ROOT_NAME",
    "FILE_EXTENSION",
]
