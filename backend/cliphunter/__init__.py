"""Cliphunter: turn long videos into vertical short-form clips."""
