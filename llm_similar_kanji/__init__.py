"""
LLM Similar Kanji Plugin

Quiz yourself on visually similar kanji you have already started on WaniKani.
"""

from . import db
from . import cache
from . import wanikani
from . import index
from . import quiz
from . import plugin

__version__ = "0.1.0"
__all__ = ["db", "cache", "wanikani", "index", "quiz", "plugin"]
