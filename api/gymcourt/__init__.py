"""Gym court reservation API."""
