"""Component suites built on the harness."""
