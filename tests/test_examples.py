"""
Test the example car model built through the API.

The builder and the EXAMPLE_UVL text describe the same product line.
"""

from fmcore.examples import EXAMPLE_UVL, build_example_car_model
from fmcore.summary import model_to_dict
from fmcore.uvl_format import read_uvl_string


def test_example_car_model_structure():
    fm = build_example_car_model()

    assert fm.root.feature.name == "Car"
    assert len(fm.features) == 8
    assert fm.check_consistency() == []

    engine = fm.get_feature("Engine").structure
    assert engine.is_alternative()
    assert engine.is_mandatory()
    assert fm.get_feature("Navigation").structure.is_or()
    assert not fm.get_feature("Navigation").structure.is_mandatory()


def test_builder_matches_uvl_text():
    built = build_example_car_model()
    parsed, problems = read_uvl_string(EXAMPLE_UVL)
    assert problems == []
    assert model_to_dict(built) == model_to_dict(parsed)
