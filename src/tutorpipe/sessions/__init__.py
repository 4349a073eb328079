"""
Conversation session exports.
"""

from .models import Session, new_id, now_s
from .store import SessionStore

__all__ = [
    "Session",
    "SessionStore",
    "new_id",
    "now_s",
]
