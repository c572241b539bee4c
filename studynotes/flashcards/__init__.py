"""
Flashcard generation from study notes.
Builds a prompt from note content, calls the LLM collaborator and validates its output.
"""

from .models import Flashcard, FlashcardSet
from .validators import (
	MalformedResponseError,
	MAX_CARDS,
	MAX_TEXT_LENGTH,
	CARD_VALIDATORS,
	extract_json_object,
	parse_cards,
)
from .generator import FlashcardGenerator, build_prompt, AMBIGUOUS_ANSWER

__all__ = [
	'Flashcard',
	'FlashcardSet',
	'FlashcardGenerator',
	'build_prompt',
	'AMBIGUOUS_ANSWER',
	'MalformedResponseError',
	'MAX_CARDS',
	'MAX_TEXT_LENGTH',
	'CARD_VALIDATORS',
	'extract_json_object',
	'parse_cards',
]
