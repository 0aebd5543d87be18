"""Lecturer-only student roster and enrollment."""
