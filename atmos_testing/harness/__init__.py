"""Suite model and execution: units, outputs, assertions, dependencies, lifecycle."""
