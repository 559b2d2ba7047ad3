"""
UVL Parser (Layer 1: Raw Text → UVL syntax tree).

Parses the Universal Variability Language into a transient document
(UVLDocument) that the reader in fmcore.uvl_format turns into a
FeatureModel.

Document layout:

    namespace Cars
    imports
        sub.Engines as eng
    features
        Car {abstract}
            mandatory
                Engine
            optional
                eng.Turbo
    constraints
        Engine => Car

Syntax Notes:
    - Indentation structures features and groups (tab = 8 columns)
    - Feature names are identifiers or double-quoted strings
    - Constraint operators: ! & | => <=>  (tightest first)
    - // starts a comment
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedEOF, UnexpectedInput
from lark.indenter import DedentError, Indenter

from fmcore.errors import FeatureModelError

logger = logging.getLogger(__name__)

GRAMMAR_PATH = os.path.join(os.path.dirname(__file__), "uvl.lark")


# =============================================================================
# Syntax tree
# =============================================================================


@dataclass(frozen=True)
class NotExpr:
    """Negated constraint expression."""
    child: "ConstraintExpr"


@dataclass(frozen=True)
class BinaryExpr:
    """
    Binary constraint expression.

    Properties:
        op: One of "and", "or", "implies", "equivalence"
        left, right: Operands
    """
    op: str
    left: "ConstraintExpr"
    right: "ConstraintExpr"


# A plain string is a feature reference.
ConstraintExpr = Union[str, NotExpr, BinaryExpr]
AttributeMap = Dict[str, object]


@dataclass
class UVLGroup:
    """
    A child group of a feature.

    Properties:
        type: Group keyword as written ("or", "mandatory", ...),
              or "cardinality" for [n..m] groups
        children: Feature declarations in this group
        cardinality: (lower, upper) for cardinality groups, upper None = *
        line: Source line of the group header
    """

    type: str
    children: List["UVLFeature"] = field(default_factory=list)
    cardinality: Optional[Tuple[int, Optional[int]]] = None
    line: int = 0


@dataclass
class UVLFeature:
    """A feature declaration with its attribute map and child groups."""

    name: str
    attributes: AttributeMap = field(default_factory=dict)
    groups: List[UVLGroup] = field(default_factory=list)
    line: int = 0

    def is_reference(self) -> bool:
        """Declarations without attributes or groups only name a feature."""
        return not self.attributes and not self.groups

    def iter_features(self) -> Iterator["UVLFeature"]:
        yield self
        for group in self.groups:
            for child in group.children:
                yield from child.iter_features()


@dataclass
class UVLImport:
    """imports entry: namespace with the alias used in references."""

    namespace: str
    alias: str
    line: int = 0


@dataclass
class UVLDocument:
    """Parsed UVL source."""

    namespace: Optional[str] = None
    imports: List[UVLImport] = field(default_factory=list)
    root_features: List[UVLFeature] = field(default_factory=list)
    constraints: List[ConstraintExpr] = field(default_factory=list)

    def iter_features(self) -> Iterator[UVLFeature]:
        for feature in self.root_features:
            yield from feature.iter_features()

    def find_feature(self, name: str) -> Optional[UVLFeature]:
        """First declaration with this name, preferring full definitions."""
        candidates = [f for f in self.iter_features() if f.name == name]
        for candidate in candidates:
            if not candidate.is_reference():
                return candidate
        return candidates[0] if candidates else None


# =============================================================================
# Errors
# =============================================================================


class UVLParseError(FeatureModelError):
    """
    Raised when UVL text is not syntactically valid.

    Properties:
        line, column: 1-based position of the offending token
        text: Excerpt of the source around the position
        expected: Tokens that would have been accepted
    """

    def __init__(self, message: str, line: int, column: int, text: str = "", expected: Optional[List[str]] = None):
        self.line = line
        self.column = column
        self.text = text
        self.expected = expected or []
        super().__init__(message)

    def describe(self) -> str:
        lines = [f"Parse error at line {self.line}, column {self.column}:", self.text]
        if self.expected:
            lines.append("Expected one of:")
            lines.extend(self.expected)
        return "\n".join(lines)


class ResolutionError(FeatureModelError):
    """Raised when a feature reference cannot be resolved."""

    def __init__(self, message: str, line: int = 0):
        self.line = line
        super().__init__(message)


# =============================================================================
# Lark plumbing
# =============================================================================


class UVLIndenter(Indenter):
    """Turns leading whitespace after newlines into _INDENT/_DEDENT."""

    NL_type = "_NL"
    OPEN_PAREN_types = ["LPAR", "LSQB", "LBRACE"]
    CLOSE_PAREN_types = ["RPAR", "RSQB", "RBRACE"]
    INDENT_type = "_INDENT"
    DEDENT_type = "_DEDENT"
    tab_len = 8

    last_newline: Optional[Token] = None

    def handle_NL(self, token: Token) -> Iterator[Token]:
        self.last_newline = token
        yield from super().handle_NL(token)


@lru_cache(maxsize=1)
def _load_lark_parser() -> Lark:
    """Load the Lark parser from the grammar file."""
    with open(GRAMMAR_PATH, "r", encoding="utf-8") as f:
        grammar = f.read()

    return Lark(
        grammar,
        parser="lalr",
        start="start",
        postlex=UVLIndenter(),
        propagate_positions=True,
        maybe_placeholders=False,
    )


def _unquote(name: str) -> str:
    if len(name) >= 2 and name[0] == name[-1] and name[0] in "\"'":
        return name[1:-1]
    return name


@dataclass(frozen=True)
class _GroupSpec:
    type: str
    cardinality: Optional[Tuple[int, Optional[int]]] = None


class _DocumentBuilder(Transformer):
    """Builds the UVL dataclasses bottom-up from the Lark tree."""

    def reference(self, names):
        return ".".join(_unquote(str(n)) for n in names)

    # -- sections -------------------------------------------------------

    def namespace(self, children):
        return ("namespace", children[0])

    @v_args(meta=True)
    def import_decl(self, meta, children):
        namespace = children[0]
        alias = children[1] if len(children) > 1 else namespace
        return UVLImport(namespace=namespace, alias=alias, line=meta.line)

    def imports(self, children):
        return ("imports", list(children))

    def features(self, children):
        return ("features", list(children))

    def constraints(self, children):
        return ("constraints", list(children))

    def start(self, children):
        document = UVLDocument()
        for section, value in children:
            if section == "namespace":
                document.namespace = value
            elif section == "imports":
                document.imports = value
            elif section == "features":
                document.root_features = value
            elif section == "constraints":
                document.constraints = value
        return document

    # -- features and groups --------------------------------------------

    @v_args(meta=True)
    def feature(self, meta, children):
        feature = UVLFeature(name=children[0], line=meta.line)
        for child in children[1:]:
            if isinstance(child, dict):
                feature.attributes = child
            else:
                feature.groups.append(child)
        return feature

    @v_args(meta=True)
    def group(self, meta, children):
        spec = children[0]
        return UVLGroup(type=spec.type, children=list(children[1:]), cardinality=spec.cardinality, line=meta.line)

    def group_keyword(self, children):
        return _GroupSpec(type=str(children[0]))

    def cardinality(self, children):
        lower = int(children[0])
        if len(children) == 1:
            return _GroupSpec(type="cardinality", cardinality=(lower, lower))
        upper = None if str(children[1]) == "*" else int(children[1])
        return _GroupSpec(type="cardinality", cardinality=(lower, upper))

    # -- attributes -----------------------------------------------------

    def attributes(self, children):
        return dict(children)

    def attribute(self, children):
        value = children[1] if len(children) > 1 else True
        return (str(children[0]), value)

    def true(self, _):
        return True

    def false(self, _):
        return False

    def number(self, children):
        text = str(children[0])
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)

    def string(self, children):
        return _unquote(str(children[0]))

    def value_list(self, children):
        return list(children)

    # -- constraints ----------------------------------------------------

    def literal(self, children):
        return children[0]

    def not_expr(self, children):
        return NotExpr(children[0])

    def and_expr(self, children):
        return BinaryExpr("and", children[0], children[1])

    def or_expr(self, children):
        return BinaryExpr("or", children[0], children[1])

    def implies(self, children):
        return BinaryExpr("implies", children[0], children[1])

    def equivalence(self, children):
        return BinaryExpr("equivalence", children[0], children[1])


def _describe_terminal(parser: Lark, name: str) -> str:
    if name in ("_NL", "$END"):
        return "end of line" if name == "_NL" else "end of input"
    if name in ("_INDENT", "_DEDENT"):
        return "indentation"
    try:
        pattern = parser.get_terminal(name).pattern
    except KeyError:
        return name
    if pattern.type == "str":
        return f"'{pattern.value}'"
    return name


def _context(text: str, line: int, column: int) -> str:
    lines = text.splitlines() or [""]
    source_line = lines[min(max(line, 1), len(lines)) - 1]
    return f"{source_line}\n{' ' * max(column - 1, 0)}^"


# =============================================================================
# Public API
# =============================================================================


def parse(text: str) -> UVLDocument:
    """
    Parse UVL text.

    Args:
        text: Complete UVL source

    Returns:
        UVLDocument

    Raises:
        UVLParseError: If the text is not valid UVL
    """
    if not text.endswith("\n"):
        text += "\n"

    parser = _load_lark_parser()
    try:
        tree = parser.parse(text)
    except UnexpectedEOF as e:
        line = text.count("\n")
        expected = sorted({_describe_terminal(parser, name) for name in e.expected})
        raise UVLParseError("Unexpected end of input", line, 1, _context(text, line, 1), expected)
    except UnexpectedInput as e:
        expected_names = getattr(e, "expected", None) or getattr(e, "allowed", None) or set()
        expected = sorted({_describe_terminal(parser, name) for name in expected_names})
        # tokens synthesized at end of input carry no position
        line = e.line if isinstance(e.line, int) and e.line > 0 else text.count("\n")
        column = e.column if isinstance(e.column, int) and e.column > 0 else 1
        raise UVLParseError(
            f"Unexpected input at line {line}, column {column}",
            line,
            column,
            _context(text, line, column),
            expected,
        )
    except DedentError as e:
        newline = parser.options.postlex.last_newline
        line = newline.end_line if newline is not None else 0
        column = newline.end_column if newline is not None else 0
        raise UVLParseError(str(e), line, column, _context(text, line, column))

    document = _DocumentBuilder().transform(tree)
    logger.debug(
        "Parsed UVL document: %d root feature(s), %d constraint(s), %d import(s)",
        len(document.root_features),
        len(document.constraints),
        len(document.imports),
    )
    return document


ImportLoader = Callable[[UVLImport], Optional[UVLDocument]]


def file_import_loader(base_dir: str) -> ImportLoader:
    """
    Loader that reads imported models from <base_dir>/<namespace path>.uvl.

    A namespace "sub.Engines" is looked up as sub/Engines.uvl.
    Missing files yield None.
    """

    def load(uvl_import: UVLImport) -> Optional[UVLDocument]:
        path = os.path.join(base_dir, *uvl_import.namespace.split(".")) + ".uvl"
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return parse(f.read())

    return load


def _qualify(feature: UVLFeature, alias: str) -> UVLFeature:
    """Copy of an imported subtree with all names prefixed by alias."""
    groups = [
        replace(group, children=[_qualify(child, alias) for child in group.children])
        for group in feature.groups
    ]
    return replace(feature, name=f"{alias}.{feature.name}", groups=groups)


class FeatureResolver:
    """
    Expands feature references to their definitions.

    A reference (a declaration without attributes or groups) is replaced
    by the first full definition of the same name in the document, or kept
    as is if there is none. A reference alias.Name whose alias is a
    declared import is looked up in the imported document, which the
    caller-supplied loader provides; the result keeps the alias prefix on
    every name. Without a loader such references stay leaves.

    Every import hop strips one alias prefix, so resolution terminates.
    """

    def __init__(self, document: UVLDocument, loader: Optional[ImportLoader] = None):
        self.document = document
        self.loader = loader
        self._imports = {i.alias: i for i in document.imports}
        self._loaded: Dict[str, Optional[UVLDocument]] = {}

    def resolve(self, feature: UVLFeature) -> UVLFeature:
        """
        Raises:
            ResolutionError: If the import cannot be loaded or the name is
                not declared there
        """
        if not feature.is_reference():
            return feature

        alias, _, local_name = feature.name.partition(".")
        if not local_name or alias not in self._imports:
            return self.document.find_feature(feature.name) or feature
        if self.loader is None:
            return feature

        uvl_import = self._imports[alias]
        imported = self._load(uvl_import)
        if imported is None:
            raise ResolutionError(
                f"Imported model {uvl_import.namespace!r} for feature {feature.name!r} could not be loaded",
                feature.line,
            )
        target = imported.find_feature(local_name)
        if target is None:
            raise ResolutionError(
                f"Feature {local_name!r} not found in imported model {uvl_import.namespace!r}",
                feature.line,
            )
        nested = FeatureResolver(imported, self.loader)
        nested._loaded = self._loaded
        definition = nested.resolve(target)
        logger.debug("Resolved %s to %s in %s", feature.name, definition.name, uvl_import.namespace)
        return _qualify(definition, alias)

    def _load(self, uvl_import: UVLImport) -> Optional[UVLDocument]:
        if uvl_import.namespace not in self._loaded:
            try:
                self._loaded[uvl_import.namespace] = self.loader(uvl_import)
            except UVLParseError as e:
                raise ResolutionError(
                    f"Imported model {uvl_import.namespace!r} is invalid: {e}",
                    uvl_import.line,
                ) from e
        return self._loaded[uvl_import.namespace]


__all__ = [
    "parse",
    "file_import_loader",
    "FeatureResolver",
    "UVLParseError",
    "ResolutionError",
    "UVLDocument",
    "UVLFeature",
    "UVLGroup",
    "UVLImport",
    "NotExpr",
    "BinaryExpr",
]
