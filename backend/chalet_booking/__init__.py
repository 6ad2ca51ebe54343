"""Chalet and farm stay booking service."""
