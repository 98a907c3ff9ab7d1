"""
Memory systems for the Hearth triage service.

- InteractionHistory: per-user record of recent bot interactions (Redis)
"""

from libs.memory.history import InteractionHistory

__all__ = ["InteractionHistory"]
