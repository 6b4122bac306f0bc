"""Talecraft — branching choose-your-path stories with coin and XP rewards."""

__version__ = "0.1.0"
