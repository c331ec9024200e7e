"""TimeCapsule API: time-locked capsules with a mood summary on unlock."""

__version__ = "1.0.0"
