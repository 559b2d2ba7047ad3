"""
Factories for feature model objects.

Readers and the obfuscator never instantiate model classes directly.
They ask a FactoryManager for the factory registered under the model's
factory id. If the id is unknown, the caller decides what happens by
passing an explicit fallback factory (or None to fail).
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from fmcore.errors import NoSuchFactoryError
from fmcore.expressions import Node
from fmcore.model import Constraint, Feature, FeatureModel

logger = logging.getLogger(__name__)


class FeatureModelFactory:
    """Creates models, features and constraints."""

    ID = "fmcore.FeatureModelFactory"

    @property
    def id(self) -> str:
        return self.ID

    def create_feature_model(self) -> FeatureModel:
        return FeatureModel(factory_id=self.id)

    def create_feature(self, feature_model: FeatureModel, name: str) -> Feature:
        """Create a feature. It is not registered in the model."""
        return Feature(feature_model, name)

    def create_constraint(self, feature_model: FeatureModel, node: Node, description: str = "") -> Constraint:
        return Constraint(feature_model, node, description)


DEFAULT_FACTORY = FeatureModelFactory()


class FactoryManager:
    """Registry of factories by id."""

    def __init__(self, factories: Optional[Iterable[FeatureModelFactory]] = None):
        self._factories: Dict[str, FeatureModelFactory] = {}
        for factory in factories or [DEFAULT_FACTORY]:
            self.register(factory)

    def register(self, factory: FeatureModelFactory) -> None:
        self._factories[factory.id] = factory

    def get_factory(
        self,
        factory_id: str,
        fallback: Optional[FeatureModelFactory] = None,
    ) -> FeatureModelFactory:
        """
        Look up a factory.

        Args:
            factory_id: Registered id
            fallback: Returned when the id is unknown

        Raises:
            NoSuchFactoryError: If the id is unknown and fallback is None
        """
        factory = self._factories.get(factory_id)
        if factory is not None:
            return factory
        if fallback is None:
            raise NoSuchFactoryError(factory_id)
        logger.warning("No factory registered for %r, falling back to %r", factory_id, fallback.id)
        return fallback

    def get_factory_for(
        self,
        feature_model: FeatureModel,
        fallback: Optional[FeatureModelFactory] = None,
    ) -> FeatureModelFactory:
        return self.get_factory(feature_model.factory_id, fallback)
