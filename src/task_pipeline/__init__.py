"""Task analysis pipeline: parse, categorize, prioritize and plan free-text tasks."""

__version__ = "0.1.0"
