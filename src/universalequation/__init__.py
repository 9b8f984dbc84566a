"""
Universal Equation
==================
Dimensional interaction and energy engine over a hypercube lattice.

    >>> from universalequation import UniversalEquation
    >>> engine = UniversalEquation(max_dimensions=5, mode=3)
    >>> engine.compute().interpretation()
"""
from universalequation.engine.equation import UniversalEquation
from universalequation.model.errors import (
    ConfigurationError, NumericInstability, OutOfRange, ResourceExhaustion
)
from universalequation.model.parameters import ParameterSet
from universalequation.model.results import DimensionInteraction, EnergyResult, InteractionTable

__all__ = [
    "UniversalEquation",
    "ParameterSet",
    "EnergyResult",
    "DimensionInteraction",
    "InteractionTable",
    "ConfigurationError",
    "OutOfRange",
    "ResourceExhaustion",
    "NumericInstability",
]
