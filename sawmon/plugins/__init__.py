"""Plugins shipped with sawmon."""
