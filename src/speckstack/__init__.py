"""Stacked branch tracking for spec-driven development across one or many repositories."""
