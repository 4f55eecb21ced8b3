"""Data models shared by the backend, sync and library layers"""

from .book import Book
from .progress import ReadingProgress

__all__ = ["Book", "ReadingProgress"]
