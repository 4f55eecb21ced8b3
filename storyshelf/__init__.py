"""Storyshelf: session and optimistic sync core for the story library"""

__version__ = "0.1.0"
