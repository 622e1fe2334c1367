"""
cuepoint background loop primitives.
"""

from cuepoint.tasks.ticker import Ticker

__all__ = ["Ticker"]
