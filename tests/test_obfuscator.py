"""
Tests for feature model obfuscation.

These tests verify:
    - Pseudonyms are deterministic for a salt and follow the F_/D_ format
    - The obfuscated model has the same shape and constraint structure
    - Descriptions are hashed, empty descriptions stay empty
    - The source model is left untouched
"""

import re

import pytest
from fmcore.errors import StructureError
from fmcore.examples import EXAMPLE_UVL, build_example_car_model
from fmcore.expressions import And, Implies, Literal, Not, get_literals
from fmcore.model import Constraint
from fmcore.obfuscator import (
    ALPHABET,
    FeatureModelObfuscator,
    anonymize,
    encode_digest,
    get_random_salt,
)
from fmcore.summary import model_to_dict, shape
from fmcore.uvl_format import read_uvl_string

FEATURE_NAME = re.compile(r"^F_[A-Za-z0-9+/]{32}$")
DESCRIPTION = re.compile(r"^D_[A-Za-z0-9+/]{32}$")


@pytest.fixture
def car_model():
    fm, problems = read_uvl_string(EXAMPLE_UVL)
    assert problems == []
    return fm


class TestEncoding:
    """Test digest encoding."""

    def test_little_endian_groups(self):
        """Three bytes become four characters, least significant first."""
        assert encode_digest(bytes([0x01, 0x00, 0x00]), 4) == "BAAA"
        assert encode_digest(bytes([0x00, 0x00, 0x80]), 4) == "AAAg"
        assert encode_digest(bytes([0xFF, 0xFF, 0xFF]), 4) == "////"

    def test_short_digest_is_zero_padded(self):
        assert encode_digest(b"", 8) == "AAAAAAAA"
        assert encode_digest(bytes([0x3F]), 8) == "/AAAAAAA"

    def test_output_alphabet(self):
        encoded = encode_digest(bytes(range(48)), 64)
        assert len(encoded) == 64
        assert set(encoded) <= set(ALPHABET)


class TestPseudonyms:
    """Test pseudonym generation."""

    def test_known_value(self, car_model):
        obfuscator = FeatureModelObfuscator(car_model, salt="salt")
        assert obfuscator.get_obfuscated_feature_name("Car") == "F_JN72Pbcpvn0Lxa+8p6tfMCCxxdX0prSh"

    def test_known_value_without_salt(self, car_model):
        obfuscator = FeatureModelObfuscator(car_model)
        assert obfuscator.get_obfuscated_feature_name("Car") == "F_l2M89tbwYJJ32+UFTtOt0NzATCHXkDns"

    def test_description_tag(self, car_model):
        obfuscator = FeatureModelObfuscator(car_model, salt="salt")
        assert obfuscator.get_obfuscated_description("Configurable car") == "D_OJNLkVWfOAAQvkOhOhGJZYEXoTRiV1YN"

    def test_length_factor(self, car_model):
        assert FeatureModelObfuscator(car_model, salt="salt", length_factor=1).get_obfuscated_feature_name("Car") == "F_JN72"

    def test_length_factor_beyond_digest_pads(self, car_model):
        name = FeatureModelObfuscator(car_model, length_factor=12).get_obfuscated_feature_name("Car")
        assert name == "F_l2M89tbwYJJ32+UFTtOt0NzATCHXkDnsvEAl1L4IDFHAAAAA"

    @pytest.mark.parametrize("length_factor", [0, -3])
    def test_invalid_length_factor(self, car_model, length_factor):
        with pytest.raises(ValueError):
            FeatureModelObfuscator(car_model, length_factor=length_factor)

    def test_salt_changes_pseudonyms(self, car_model):
        first = FeatureModelObfuscator(car_model, salt="a").get_obfuscated_feature_name("Car")
        second = FeatureModelObfuscator(car_model, salt="b").get_obfuscated_feature_name("Car")
        assert first != second


class TestAnonymize:
    """Test the obfuscated model."""

    def test_all_names_replaced(self, car_model):
        anonymized = anonymize(car_model, salt="s3cret")
        assert len(anonymized.features) == len(car_model.features)
        assert all(FEATURE_NAME.match(name) for name in anonymized.features)

    def test_deterministic(self, car_model):
        first = anonymize(car_model, salt="s3cret")
        second = anonymize(car_model, salt="s3cret")
        assert model_to_dict(first) == model_to_dict(second)

    def test_same_shape(self, car_model):
        anonymized = anonymize(car_model, salt="s3cret")
        assert shape(anonymized.root) == shape(car_model.root)

    def test_flags_copied(self, car_model):
        anonymized = anonymize(car_model, salt="s3cret")
        pairs = list(zip(car_model.root.pre_order(), anonymized.root.pre_order()))
        assert len(pairs) == 8
        for original, copy in pairs:
            assert copy.is_and() == original.is_and()
            assert copy.is_multiple() == original.is_multiple()
            assert copy.is_mandatory_set() == original.is_mandatory_set()
            assert copy.is_abstract() == original.is_abstract()
            assert copy.is_hidden() == original.is_hidden()

    def test_constraint_structure(self, car_model):
        obfuscator = FeatureModelObfuscator(car_model, salt="s3cret")
        anonymized = obfuscator.execute()
        name = obfuscator.get_obfuscated_feature_name
        assert [c.node for c in anonymized.constraints] == [
            Implies(Literal(name("Navigation")), Literal(name("Electric"))),
            Not(And(Literal(name("Petrol")), Literal(name("Offline")))),
        ]

    def test_constraint_literals_name_features(self, car_model):
        anonymized = anonymize(car_model, salt="s3cret")
        for constraint in anonymized.constraints:
            for literal in get_literals(constraint.node):
                assert literal.var in anonymized.features
        assert anonymized.check_consistency() == []

    def test_descriptions_hashed(self, car_model):
        car_model.constraints[0].description = "navigation needs power"
        anonymized = anonymize(car_model, salt="s3cret")
        assert DESCRIPTION.match(anonymized.root.feature.description)
        assert DESCRIPTION.match(anonymized.constraints[0].description)
        assert anonymized.constraints[1].description == ""
        for feature in anonymized.features.values():
            if feature is not anonymized.root.feature:
                assert feature.description == ""

    def test_attributes_not_copied(self):
        fm, problems = read_uvl_string("features\n    Car {cost 12, vendor 'acme'}\n")
        anonymized = anonymize(fm, salt="s3cret")
        assert anonymized.root.feature.attributes == {}

    def test_source_untouched(self, car_model):
        before = model_to_dict(car_model)
        anonymize(car_model, salt="s3cret")
        assert model_to_dict(car_model) == before

    def test_relevant_constraints_rebuilt(self, car_model):
        obfuscator = FeatureModelObfuscator(car_model, salt="s3cret")
        anonymized = obfuscator.execute()
        navigation = anonymized.get_feature(obfuscator.get_obfuscated_feature_name("Navigation"))
        assert navigation.structure.relevant_constraints == [anonymized.constraints[0]]

    def test_parsed_and_built_models_agree(self, car_model):
        """Pseudonyms depend only on names, not on how the model was made."""
        assert model_to_dict(anonymize(car_model, salt="x")) == model_to_dict(anonymize(build_example_car_model(), salt="x"))

    def test_empty_model(self):
        fm, problems = read_uvl_string("namespace Empty\n")
        fm.reset()
        anonymized = anonymize(fm, salt="s3cret")
        assert anonymized.root is None
        assert anonymized.features == {}

    def test_added_constraint_copied(self, car_model):
        car_model.add_constraint(Constraint(car_model, Literal("Car")))
        anonymized = anonymize(car_model, salt="s3cret")
        assert len(anonymized.constraints) == 3

    def test_pseudonym_collision_raises(self):
        """Two names hashing to the same short pseudonym must not drop a feature."""
        fm, problems = read_uvl_string(
            "features\n    Root\n        optional\n            Feature375\n            Feature642\n"
        )
        obfuscator = FeatureModelObfuscator(fm, length_factor=1)
        assert obfuscator.get_obfuscated_feature_name("Feature375") == "F_SaRb"
        assert obfuscator.get_obfuscated_feature_name("Feature642") == "F_SaRb"

        with pytest.raises(StructureError, match="Feature375.*Feature642.*F_SaRb"):
            obfuscator.execute()

    def test_no_collision_with_default_length(self):
        fm, problems = read_uvl_string(
            "features\n    Root\n        optional\n            Feature375\n            Feature642\n"
        )
        anonymized = anonymize(fm)
        assert len(anonymized.features) == 3
        assert anonymized.check_consistency() == []


class TestRandomSalt:
    """Test salt generation."""

    def test_url_safe(self):
        salt = get_random_salt()
        assert len(salt) == 32
        assert re.match(r"^[A-Za-z0-9_-]+$", salt)

    def test_fresh_each_call(self):
        assert get_random_salt() != get_random_salt()
