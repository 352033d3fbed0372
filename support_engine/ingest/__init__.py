"""Entry point wiring classification, order lookup and tickets together."""

from .engine import ChatReply, ConversationEngine, CustomerContact, SellerReplyOutcome

__all__ = ["ChatReply", "ConversationEngine", "CustomerContact", "SellerReplyOutcome"]
