"""YAML loading and command-line entry points."""
