"""
Application services.
"""

from reqai.services.session_manager import AttachmentReply, SessionManager, TurnReply

__all__ = ["AttachmentReply", "SessionManager", "TurnReply"]
