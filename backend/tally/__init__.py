"""Tally: study progress, quota and streak tracking."""
