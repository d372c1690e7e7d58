"""Relational pipeline: identifier sanitizing, statement building and execution."""
