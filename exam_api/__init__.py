"""Timed assessment attempts and grading API."""
