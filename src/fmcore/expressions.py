"""
Propositional Constraint Representation

Cross-tree constraints of a feature model are expression trees over
feature-name literals. The set of node types is closed:

    Literal, Not, And, Or, Implies, Equals

ARCHITECTURAL RULE:
    Nodes are structure only. They are never evaluated here
    (no SAT solving, no simplification). Every function that walks
    a tree handles each node type explicitly and raises TypeError
    for anything else.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from typing import Callable, List, Set


class Node(ABC):
    """
    Base class for all propositional nodes.

    Intentionally minimal. It exists to type the node hierarchy.
    """
    pass


@dataclass(frozen=True)
class Literal(Node):
    """
    References a feature by name.

    Properties:
        var: Feature name

    IMPORTANT:
        This object does NOT check that the feature exists.
        FeatureModel.check_consistency() does that.
    """

    var: str


@dataclass(frozen=True)
class Not(Node):
    """Logical negation."""

    child: Node


@dataclass(frozen=True)
class BinaryNode(Node):
    """
    Common shape of the binary connectives.

    Subclasses only set the operator symbol used for display.
    """

    left: Node
    right: Node

    symbol = "?"


@dataclass(frozen=True)
class And(BinaryNode):
    symbol = "&"


@dataclass(frozen=True)
class Or(BinaryNode):
    symbol = "|"


@dataclass(frozen=True)
class Implies(BinaryNode):
    symbol = "=>"


@dataclass(frozen=True)
class Equals(BinaryNode):
    """Equivalence (both sides have the same truth value)."""
    symbol = "<=>"


def get_literals(node: Node) -> List[Literal]:
    """Collect all literals of a tree, left to right."""
    if isinstance(node, Literal):
        return [node]
    if isinstance(node, Not):
        return get_literals(node.child)
    if isinstance(node, BinaryNode):
        return get_literals(node.left) + get_literals(node.right)
    raise TypeError(f"Unsupported node type: {type(node)}")


def get_contained_variables(node: Node) -> Set[str]:
    """Names of all features a tree mentions."""
    return {literal.var for literal in get_literals(node)}


def rename_literals(node: Node, rename: Callable[[str], str]) -> Node:
    """
    Copy a tree, replacing every literal name with rename(name).

    The copy has exactly the same operator structure as the input.
    """
    if isinstance(node, Literal):
        return Literal(rename(node.var))
    if isinstance(node, Not):
        return Not(rename_literals(node.child, rename))
    if isinstance(node, BinaryNode):
        return type(node)(
            left=rename_literals(node.left, rename),
            right=rename_literals(node.right, rename),
        )
    raise TypeError(f"Unsupported node type: {type(node)}")


def _quote(name: str) -> str:
    if name.replace("_", "a").replace(".", "a").isalnum() and not name[:1].isdigit():
        return name
    return f'"{name}"'


def node_to_string(node: Node) -> str:
    """Render a tree in UVL constraint syntax, fully parenthesized."""
    if isinstance(node, Literal):
        return _quote(node.var)
    if isinstance(node, Not):
        return f"!{node_to_string(node.child)}"
    if isinstance(node, BinaryNode):
        return f"({node_to_string(node.left)} {node.symbol} {node_to_string(node.right)})"
    raise TypeError(f"Unsupported node type: {type(node)}")
