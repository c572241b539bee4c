"""
Study notes service: per-user note storage and LLM-backed flashcard generation.
"""

__version__ = '1.0.0'
