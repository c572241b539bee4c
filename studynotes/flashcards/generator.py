"""Note-to-flashcard conversion through an LLM collaborator.

``FlashcardGenerator.generate`` re-checks that the note still exists, builds a
prompt around the raw note content, awaits the collaborator and turns the
validated response into a ``FlashcardSet``. Validation is all-or-nothing: a
response either passes every check or the call fails.
"""
from __future__ import annotations

import os
import time
from typing import Optional

from studynotes.llm import TextLLM, LLMInvocationError
from studynotes.notes import NoteStore, Note, User, NoteNotFoundError
from studynotes.utils import get_logger, get_request_context, log_flashcard_generation

from .models import Flashcard, FlashcardSet
from .validators import MAX_CARDS, parse_cards

LOG = get_logger()

FLASHCARD_SUBJECT = os.getenv('FLASHCARD_SUBJECT', 'Torah')
AMBIGUOUS_ANSWER = 'Ambiguous / not stated'


def build_prompt(content: str, subject: str = FLASHCARD_SUBJECT) -> str:
    return f"""You are a focused flashcard generator for {subject} study.
Input: a block of notes about any {subject} topic.
Output: valid JSON only. No commentary, no markdown, no extra text.

CRITICAL REQUIREMENTS:
1. Parse the notes and generate concise question/answer flashcards covering key rulings, definitions, reasons, stories, contrasts, disagreements and ideas.
2. Produce up to {MAX_CARDS} cards depending on input length; if the notes are short, do not make up information that is not present in the notes to create more cards.
3. IMPORTANT: If nothing is provided in the notes, do not create any cards.
4. IMPORTANT: If insufficient information is provided, do not use any outside knowledge to create cards.
5. Each card must have: id (integer starting at 1, increasing by 1), question (string), answer (string).
6. The top-level JSON must include only one key: "cards" (array).
7. Do not include tags, timestamps, language markers, titles, or any other metadata.
8. If an item in the notes is ambiguous or missing a clear answer, set the answer to "{AMBIGUOUS_ANSWER}".
9. Do not invent sources or facts not present in the notes.
10. If the notes do not relate to {subject}, return zero cards.
11. Return parsable JSON only. Do not include any other text.

Output format example (valid JSON only):
{{
    "cards": [
        {{
            "id": <number starting at 1>,
            "question": <string Question text>,
            "answer": <string Answer text>
        }}
        ... up to {MAX_CARDS} cards ...
    ]
}}

Now process the input notes below and return ONLY the JSON object, no additional text.

"
{content}
"
"""


class FlashcardGenerator:
    def __init__(self, store: NoteStore, subject: Optional[str] = None):
        self.store = store
        self.subject = subject or FLASHCARD_SUBJECT

    async def generate(self, user: User, note: Note, llm: TextLLM) -> FlashcardSet:
        # the caller's note may be a stale copy of one removed since
        if not self.store.contains(user, note.name):
            raise NoteNotFoundError('No notes of given name found for the user.')

        prompt = build_prompt(note.content, self.subject)
        start = time.time()
        try:
            response_text = await llm.execute_text(prompt)
        except LLMInvocationError:
            raise
        except Exception as e:
            LOG.exception('flashcard_llm_failed', exc_info=True)
            raise LLMInvocationError(str(e)) from e
        LOG.debug('flashcard_llm_response', extra={'user_id': user.id, 'note_name': note.name, 'text': response_text})

        raw_cards = parse_cards(response_text)
        cards = [Flashcard(question=c['question'], answer=c['answer']) for c in raw_cards]

        duration_ms = int((time.time() - start) * 1000)
        log_flashcard_generation(
            get_request_context().get('request_id'),
            user.id,
            note.name,
            len(cards),
            duration_ms,
            response_chars=len(response_text),
        )
        return FlashcardSet(user=user, cards=cards)
