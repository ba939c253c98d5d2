"""Hobby time tracking with optional cloud sync and leaderboards."""

from .models import Hobby, HobbyTheme, TimeSession, UserProfile
from .tracking import HobbyTracker

__all__ = ["Hobby", "HobbyTheme", "HobbyTracker", "TimeSession", "UserProfile"]
