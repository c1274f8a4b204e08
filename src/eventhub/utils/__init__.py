"""Identifier and pagination helpers."""
