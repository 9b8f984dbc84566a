"""Value types, parameter store, errors and file IO of the engine."""
