"""
Typed feature attributes.

UVL attribute maps ({cost 5, vendor 'acme'}) become typed attributes on
the feature. The type tag is derived from the Python value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

AttributeValue = Union[str, int, float, bool]


@dataclass
class FeatureAttribute:
    """
    A named value attached to a feature.

    Properties:
        name: Attribute key
        value: Attribute value
        unit: Optional unit of measure (e.g. "ms")
        recursive: Whether child features inherit the attribute
        configurable: Whether the value may be chosen during configuration
    """

    name: str
    value: AttributeValue
    unit: Optional[str] = None
    recursive: bool = False
    configurable: bool = False

    attribute_type = "string"

    def clone(self) -> "FeatureAttribute":
        return type(self)(
            name=self.name,
            value=self.value,
            unit=self.unit,
            recursive=self.recursive,
            configurable=self.configurable,
        )


@dataclass
class StringFeatureAttribute(FeatureAttribute):
    value: str = ""
    attribute_type = "string"


@dataclass
class LongFeatureAttribute(FeatureAttribute):
    value: int = 0
    attribute_type = "long"


@dataclass
class DoubleFeatureAttribute(FeatureAttribute):
    value: float = 0.0
    attribute_type = "double"


@dataclass
class BooleanFeatureAttribute(FeatureAttribute):
    value: bool = False
    attribute_type = "boolean"


def create_attribute(name: str, value: AttributeValue, unit: Optional[str] = None) -> FeatureAttribute:
    """Create the attribute class matching the type of value."""
    if isinstance(value, bool):
        return BooleanFeatureAttribute(name=name, value=value, unit=unit)
    if isinstance(value, int):
        return LongFeatureAttribute(name=name, value=value, unit=unit)
    if isinstance(value, float):
        return DoubleFeatureAttribute(name=name, value=value, unit=unit)
    return StringFeatureAttribute(name=name, value=str(value), unit=unit)
