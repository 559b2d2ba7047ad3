"""
Inspection dumps of feature models.

Turns a FeatureModel into a plain dict (and from there JSON or YAML) for
reading, diffing and test assertions. This is a one-way report, not a
persistence format: there is no loader.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

import yaml

from fmcore.attributes import FeatureAttribute
from fmcore.expressions import node_to_string
from fmcore.model import Constraint, FeatureModel, UsedModel
from fmcore.structure import FeatureStructure


def group_type_name(structure: FeatureStructure) -> str:
    if structure.is_and():
        return "and"
    if structure.is_or():
        return "or"
    return "alternative"


def attribute_to_dict(a: FeatureAttribute) -> Dict[str, Any]:
    return {"type": a.attribute_type, "value": a.value, "unit": a.unit}


def structure_to_dict(s: FeatureStructure) -> Dict[str, Any]:
    feature = s.feature
    return {
        "name": feature.name,
        "group": group_type_name(s),
        "mandatory": s.is_mandatory(),
        "abstract": s.is_abstract(),
        "hidden": s.is_hidden(),
        "description": feature.description,
        "attributes": {name: attribute_to_dict(a) for name, a in feature.attributes.items()},
        "children": [structure_to_dict(c) for c in s.children],
    }


def constraint_to_dict(c: Constraint) -> Dict[str, Any]:
    return {"formula": node_to_string(c.node), "description": c.description}


def used_model_to_dict(u: UsedModel) -> Dict[str, Any]:
    return {
        "alias": u.alias,
        "namespace": u.namespace,
        "path": str(u.path) if u.path is not None else None,
    }


def shape(s: FeatureStructure) -> List[Any]:
    """Name-free tree shape: [group, mandatory, abstract, [child shapes...]]."""
    return [group_type_name(s), s.is_mandatory(), s.is_abstract(), [shape(c) for c in s.children]]


def model_to_dict(fm: FeatureModel) -> Dict[str, Any]:
    return {
        "source": str(fm.source_path) if fm.source_path is not None else None,
        "root": structure_to_dict(fm.root) if fm.root is not None else None,
        "constraints": [constraint_to_dict(c) for c in fm.constraints],
        "imports": [used_model_to_dict(u) for u in fm.external_models.values()],
    }


def model_to_json(fm: FeatureModel) -> str:
    return json.dumps(model_to_dict(fm), sort_keys=True)


def model_to_yaml(fm: FeatureModel) -> str:
    return yaml.safe_dump(model_to_dict(fm), sort_keys=False)
