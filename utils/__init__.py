"""
Utility modules for the land matching engine.
"""

from .formatting import format_man, format_number, format_tsubo, round_half_up
from .config import Config

__all__ = ["format_man", "format_number", "format_tsubo", "round_half_up", "Config"]
