"""
Feature model exceptions.

Only programmer errors and fatal configuration errors are raised.
Problems in source documents are reported as diagnostics instead
(see fmcore.problems).
"""


class FeatureModelError(Exception):
    """Base exception for the feature model core."""
    pass


class StructureError(FeatureModelError):
    """Raised when a tree operation would break the feature tree invariants."""
    pass


class NoSuchFactoryError(FeatureModelError):
    """Raised when no factory is registered for an id and no fallback is given."""
    def __init__(self, factory_id: str):
        self.factory_id = factory_id
        super().__init__(f"No feature model factory registered for id: {factory_id}")


class UnsupportedOperationError(FeatureModelError, NotImplementedError):
    """Raised by formats for operations they do not support (e.g. writing UVL)."""
    pass
