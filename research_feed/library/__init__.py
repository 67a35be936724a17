"""Public library of shared subscriptions."""

from research_feed.library.schemas import LIBRARY_COLLECTION, PublicLibraryEntry
from research_feed.library.service import DuplicateEntryError, LibraryService

__all__ = ["LIBRARY_COLLECTION", "DuplicateEntryError", "LibraryService", "PublicLibraryEntry"]
