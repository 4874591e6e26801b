"""In-memory storage used by the settlement core when no backend is wired in."""

from .quotes import InMemoryQuoteStore

__all__ = ["InMemoryQuoteStore"]
