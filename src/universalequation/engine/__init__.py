"""Numerical core: lattice, interactions, aggregation, projection and caching."""
