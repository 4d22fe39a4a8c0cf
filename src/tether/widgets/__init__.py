"""Textual widgets for displaying resources."""
