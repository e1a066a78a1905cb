"""PCMS command-line interface."""
