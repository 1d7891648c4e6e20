"""Conversation snapshot storage."""

from relaygraph.core.store.rollback import ConversationStore, Snapshot

__all__ = ["ConversationStore", "Snapshot"]
