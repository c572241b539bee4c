from typing import List

from pydantic import BaseModel, Field

from studynotes.notes import User


class Flashcard(BaseModel):
    question: str
    answer: str


class FlashcardSet(BaseModel):
    user: User
    cards: List[Flashcard] = Field(default_factory=list)
