"""
Error Taxonomy
==============
Exceptions raised by the engine.

Each error derives from the builtin it specialises, so callers that only know
about ``ValueError`` / ``IndexError`` / ``MemoryError`` still catch them.

Classes:
    ConfigurationError: Invalid constructor argument or parameter name (fatal).
    OutOfRange: Vertex index outside the current table (never retried).
    ResourceExhaustion: Lattice allocation failed even after degradation (fatal).
    NumericInstability: NaN/Inf met mid-computation (recovered locally).
"""


class ConfigurationError(ValueError):
    """Raised when the engine is constructed or configured with invalid values."""


class OutOfRange(IndexError):
    """Raised when a vertex index lies outside the current vertex table."""

    def __init__(self, index: int, size: int):
        super().__init__(f"Vertex index {index} is outside the table of {size} vertices.")
        self.index = index
        self.size = size


class ResourceExhaustion(MemoryError):
    """Raised when the lattice cannot be allocated, even at dimension 1."""

    def __init__(self, message: str, dimension: int, vertex_cap: int, attempts: int):
        super().__init__(message)
        self.dimension = dimension
        self.vertex_cap = vertex_cap
        self.attempts = attempts


class NumericInstability(ArithmeticError):
    """
    A non-finite value was produced by a numerical operation.

    Only raised by the strict helpers in :mod:`universalequation.utils`; the
    engine catches it where it occurs and substitutes a safe default.
    """

    def __init__(self, label: str, value: float):
        super().__init__(f"Non-finite value in '{label}': {value}")
        self.label = label
        self.value = value
