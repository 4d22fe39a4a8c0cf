"""Utility helpers for Tether."""
