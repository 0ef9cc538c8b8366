"""Conversation memory for the relay bot."""

from .context_manager import ConversationContextStore

__all__ = ["ConversationContextStore"]
