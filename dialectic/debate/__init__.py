"""Debate module."""

from .orchestrator import QUEUED, DebateEventListener, DebateOrchestrator, IDebateOrchestrator

__all__ = ["QUEUED", "DebateEventListener", "DebateOrchestrator", "IDebateOrchestrator"]
