"""
Example feature model builder.

Builds a small car product line through the factory and tree API
(no parsing), with each group type, a description and constraints.

    Car
      mandatory: Engine (alternative: Petrol, Electric), Wheels
      optional:  Navigation (or: GPS, Offline)
    constraints:
      Navigation => Electric
      !(Petrol & Offline)
"""
from fmcore.expressions import And, Implies, Literal, Not
from fmcore.factory import DEFAULT_FACTORY, FeatureModelFactory
from fmcore.model import Feature, FeatureModel


EXAMPLE_UVL = """\
namespace Cars
features
    Car {abstract, description 'Configurable car'}
        mandatory
            Engine {abstract}
                alternative
                    Petrol
                    Electric
            Wheels
        optional
            Navigation
                or
                    GPS
                    Offline
constraints
    Navigation => Electric
    !(Petrol & Offline)
"""


def _add(fm: FeatureModel, factory: FeatureModelFactory, parent: Feature, name: str) -> Feature:
    feature = factory.create_feature(fm, name)
    fm.add_feature(feature)
    parent.structure.add_child(feature.structure)
    return feature


def build_example_car_model(factory: FeatureModelFactory = DEFAULT_FACTORY) -> FeatureModel:
    fm = factory.create_feature_model()

    car = factory.create_feature(fm, "Car")
    car.description = "Configurable car"
    car.structure.set_abstract(True)
    fm.add_feature(car)
    fm.set_root(car.structure)

    engine = _add(fm, factory, car, "Engine")
    engine.structure.set_abstract(True)
    engine.structure.set_mandatory(True)
    _add(fm, factory, engine, "Petrol")
    _add(fm, factory, engine, "Electric")
    engine.structure.change_to_alternative()

    wheels = _add(fm, factory, car, "Wheels")
    wheels.structure.set_mandatory(True)

    navigation = _add(fm, factory, car, "Navigation")
    _add(fm, factory, navigation, "GPS")
    _add(fm, factory, navigation, "Offline")
    navigation.structure.change_to_or()

    fm.add_constraint(factory.create_constraint(fm, Implies(Literal("Navigation"), Literal("Electric"))))
    fm.add_constraint(factory.create_constraint(fm, Not(And(Literal("Petrol"), Literal("Offline")))))

    return fm
