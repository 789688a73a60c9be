"""Test fixtures: atmos execution, working directories, identifiers, AWS lookups."""
