"""Core modules for graphopt."""
