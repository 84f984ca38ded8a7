"""Decoded ELF models, diagnostics, errors and the inspection engine."""
