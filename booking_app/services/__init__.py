"""Booking services: slot generation, validation and persistence."""
