"""
Availability resolution and conflict detection for provider schedules.
"""

__version__ = "0.1.0"
