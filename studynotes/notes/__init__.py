"""
Per-user note storage with name uniqueness.
"""

from .store import (
	NoteStore,
	User,
	Note,
	NoteStoreError,
	DuplicateNameError,
	UserNotFoundError,
	NoteNotFoundError,
)

__all__ = [
	'NoteStore',
	'User',
	'Note',
	'NoteStoreError',
	'DuplicateNameError',
	'UserNotFoundError',
	'NoteNotFoundError',
]
