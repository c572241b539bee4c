"""In-memory note storage keyed by user id and note name.

Each user's notes live in a dict keyed by name, so the per-user name
uniqueness check and lookups are single dictionary operations.
"""
from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict

from studynotes.utils import log_note_operation


class NoteStoreError(Exception):
    pass


class DuplicateNameError(NoteStoreError):
    pass


class UserNotFoundError(NoteStoreError):
    pass


class NoteNotFoundError(NoteStoreError):
    pass


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str


class Note(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: User
    name: str
    content: str


class NoteStore:
    def __init__(self):
        self._notes: Dict[int, Dict[str, Note]] = {}

    def _user_notes(self, user: User) -> Dict[str, Note]:
        user_notes = self._notes.get(user.id)
        if not user_notes:
            raise UserNotFoundError('No notes found for the user.')
        return user_notes

    def add(self, user: User, name: str, content: str) -> Note:
        user_notes = self._notes.setdefault(user.id, {})
        if name in user_notes:
            raise DuplicateNameError('Notes with this name already exist for the user.')
        note = Note(user=user, name=name, content=content)
        user_notes[name] = note
        log_note_operation('add', user.id, name, content_length=len(content))
        return note

    def remove(self, user: User, name: str) -> None:
        user_notes = self._user_notes(user)
        if name not in user_notes:
            raise NoteNotFoundError('No notes of given name found for the user.')
        del user_notes[name]
        # a user whose last note is gone has no notes at all
        if not user_notes:
            del self._notes[user.id]
        log_note_operation('remove', user.id, name)

    def get(self, user: User, name: str) -> Note:
        user_notes = self._user_notes(user)
        note = user_notes.get(name)
        if note is None:
            raise NoteNotFoundError('No notes of given name found for the user.')
        return note

    def contains(self, user: User, name: str) -> bool:
        return name in self._notes.get(user.id, {})

    def list_names(self, user: User) -> List[str]:
        return sorted(self._notes.get(user.id, {}))
