"""Constraint validation for beats and territories."""
