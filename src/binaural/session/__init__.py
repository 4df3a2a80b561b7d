"""
Session Module: Turn form input into a resolved session.

- Clamp/default every parameter (never rejects input)
- Resolve render duration (explicit > probed music length > 30 min)
- Band labels, filenames and response metadata
"""

__all__ = ["params", "duration", "naming"]
