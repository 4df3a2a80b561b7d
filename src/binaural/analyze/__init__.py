"""
Analysis Module: Verify rendered sessions offline.

- Dominant frequency per channel
- Beat = |left - right|
"""

__all__ = ["verify"]
