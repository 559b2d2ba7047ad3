"""
Feature model obfuscation.

Produces a copy of a feature model with the same tree shape, group types,
flags and constraint structure, in which every feature name and every
non-empty description is replaced by a salted SHA-256 pseudonym:

    F_<4 * length_factor characters>   for feature names
    D_<4 * length_factor characters>   for descriptions

The same (salt, model) pair always yields the same pseudonyms. Without
the salt the original names cannot be recovered, so callers should
pass one (see get_random_salt()).

Encoding: 3 * length_factor digest bytes are consumed in groups of three.
Each group is read little-endian into a 24-bit integer and written as
four 6-bit digits, least significant first, over ALPHABET. If the digest
is shorter than needed it is right-padded with zero bytes.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Dict, Optional

from fmcore.errors import StructureError
from fmcore.expressions import rename_literals
from fmcore.factory import DEFAULT_FACTORY, FactoryManager, FeatureModelFactory
from fmcore.model import Feature, FeatureModel
from fmcore.structure import FeatureStructure

logger = logging.getLogger(__name__)

DEFAULT_LENGTH_FACTOR = 8
ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
RANDOM_SALT_BYTES = 24

FEATURE_TAG = "F"
DESCRIPTION_TAG = "D"


def encode_digest(digest: bytes, width: int) -> str:
    """Encode the first (width // 4) * 3 bytes of digest as width characters."""
    length = (width >> 2) * 3
    if len(digest) < length:
        digest = digest + bytes(length - len(digest))

    chars = []
    for i in range(0, length, 3):
        x = digest[i] | (digest[i + 1] << 8) | (digest[i + 2] << 16)
        for _ in range(4):
            chars.append(ALPHABET[x & 0x3F])
            x >>= 6
    return "".join(chars)


def get_random_salt() -> str:
    """A fresh URL-safe salt built from 24 random bytes."""
    return secrets.token_urlsafe(RANDOM_SALT_BYTES)


class FeatureModelObfuscator:
    """
    Creates an anonymized copy of a feature model.

    Args:
        feature_model: Model to anonymize (left untouched)
        salt: Salt prepended to every hashed string (empty if omitted,
              which is not recommended)
        length_factor: Pseudonym body is 4 * length_factor characters
        manager: Factory registry used to look up the model's factory
        fallback: Factory used if the model's factory id is unknown
    """

    def __init__(
        self,
        feature_model: FeatureModel,
        salt: str = "",
        length_factor: int = DEFAULT_LENGTH_FACTOR,
        manager: Optional[FactoryManager] = None,
        fallback: Optional[FeatureModelFactory] = DEFAULT_FACTORY,
    ):
        if length_factor < 1:
            raise ValueError(f"length_factor must be positive, got {length_factor}")
        self.org_feature_model = feature_model
        self.salt = salt.encode("utf-8")
        self.length_factor = length_factor
        self.factory = (manager or FactoryManager()).get_factory_for(feature_model, fallback)
        self.obfuscated_feature_model: Optional[FeatureModel] = None
        self._source_names: Dict[str, str] = {}

    def execute(self) -> FeatureModel:
        """Build and return the anonymized model."""
        self.obfuscated_feature_model = self.factory.create_feature_model()
        self._source_names = {}
        root = self.org_feature_model.root
        if root is not None:
            self._obfuscate_structure(root, None)
        self._obfuscate_constraints()
        logger.debug(
            "Obfuscated %d feature(s) and %d constraint(s)",
            len(self.obfuscated_feature_model.features),
            len(self.obfuscated_feature_model.constraints),
        )
        return self.obfuscated_feature_model

    def _obfuscate_structure(self, org_structure: FeatureStructure, parent_feature: Optional[Feature]) -> None:
        fm = self.obfuscated_feature_model
        org_feature = org_structure.feature

        feature = self.factory.create_feature(fm, self.get_obfuscated_feature_name(org_feature.name))
        if org_feature.description:
            feature.description = self.get_obfuscated_description(org_feature.description)

        structure = feature.structure
        structure.set_abstract(org_structure.is_abstract())
        structure.set_hidden(org_structure.is_hidden())
        structure.set_mandatory(org_structure.is_mandatory_set())
        structure.set_and_flag(org_structure.is_and())
        structure.set_multiple(org_structure.is_multiple())

        if not fm.add_feature(feature):
            raise StructureError(
                f"Features {self._source_names.get(feature.name, feature.name)!r} and {org_feature.name!r} "
                f"share the pseudonym {feature.name!r}; use a larger length_factor or another salt"
            )
        self._source_names[feature.name] = org_feature.name
        if parent_feature is None:
            fm.set_root(structure)
        else:
            parent_feature.structure.add_child(structure)

        for org_child in org_structure.children:
            self._obfuscate_structure(org_child, feature)

    def _obfuscate_constraints(self) -> None:
        fm = self.obfuscated_feature_model
        for constraint in self.org_feature_model.constraints:
            node = rename_literals(constraint.node, self.get_obfuscated_feature_name)
            description = ""
            if constraint.description:
                description = self.get_obfuscated_description(constraint.description)
            fm.add_constraint(self.factory.create_constraint(fm, node, description))

    def get_obfuscated_feature_name(self, name: str) -> str:
        return self._obfuscate(FEATURE_TAG, name)

    def get_obfuscated_description(self, description: str) -> str:
        return self._obfuscate(DESCRIPTION_TAG, description)

    def _obfuscate(self, tag: str, text: str) -> str:
        digest = hashlib.sha256()
        digest.update(self.salt)
        digest.update(text.encode("utf-8"))
        return f"{tag}_{encode_digest(digest.digest(), 4 * self.length_factor)}"


def anonymize(
    feature_model: FeatureModel,
    salt: str = "",
    length_factor: int = DEFAULT_LENGTH_FACTOR,
) -> FeatureModel:
    """Shortcut for FeatureModelObfuscator(...).execute()."""
    return FeatureModelObfuscator(feature_model, salt=salt, length_factor=length_factor).execute()
