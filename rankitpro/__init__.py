"""Rank It Pro backend package."""
