"""Durable debate log."""

from .debate_log import DebateLog, IDebateLog
from .serializer import debate_from_dict, debate_to_dict

__all__ = ["DebateLog", "IDebateLog", "debate_from_dict", "debate_to_dict"]
