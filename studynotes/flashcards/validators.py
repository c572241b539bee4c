"""Validation of untrusted LLM output for flashcard generation.

The raw response is first reduced to a JSON object by ``extract_json_object``,
then passed through ``CARD_VALIDATORS`` in order. Each validator checks one
property and raises ``MalformedResponseError`` with its own reason, so new
checks can be appended without changing the messages of existing ones.
"""
import json
from typing import Any, Callable, Dict, List, Tuple

MAX_CARDS = 25
MAX_TEXT_LENGTH = 2000


def _reject_constant(name: str):
    raise ValueError(f'{name} is not valid JSON')


# NaN / Infinity / -Infinity are Python extensions, not JSON
_decoder = json.JSONDecoder(parse_constant=_reject_constant)


class MalformedResponseError(Exception):
    def __init__(self, reason: str):
        super().__init__(f'Failed to parse LLM response: {reason}')
        self.reason = reason


def _matching_brace(text: str, start: int) -> int:
    """Index just past the brace closing ``text[start]``, or -1 if it never closes."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first top-level ``{...}`` span of ``text`` that decodes as a JSON object.

    Braces nested inside a span that fails to decode are never tried on their
    own, so a fragment of a broken outer object is not mistaken for the answer.
    """
    start = text.find('{')
    if start == -1:
        raise MalformedResponseError('No JSON found in response')
    while start != -1:
        end = _matching_brace(text, start)
        if end == -1:
            break
        try:
            value, consumed = _decoder.raw_decode(text[:end], start)
        except ValueError:
            value, consumed = None, start
        if isinstance(value, dict) and consumed == end:
            return value
        start = text.find('{', end)
    raise MalformedResponseError('Response does not contain a valid JSON object')


def validate_cards_array(payload: Dict[str, Any]) -> List[Any]:
    cards = payload.get('cards')
    if not isinstance(cards, list):
        raise MalformedResponseError('Invalid JSON structure: missing cards array')
    return cards


def _is_number(value: Any) -> bool:
    # JSON true/false decode to bool, which is an int subclass
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_card_fields(cards: List[Any]) -> None:
    for card in cards:
        if (
            not isinstance(card, dict)
            or not _is_number(card.get('id'))
            or not isinstance(card.get('question'), str)
            or not isinstance(card.get('answer'), str)
        ):
            raise MalformedResponseError('Invalid card format: question and answer must be strings, id must be a number')


def validate_card_count(cards: List[Any]) -> None:
    if len(cards) > MAX_CARDS:
        raise MalformedResponseError(f'Too many cards generated, exceeds limit of {MAX_CARDS}')


def validate_card_text(cards: List[Any]) -> None:
    for card in cards:
        q = card['question'].strip()
        a = card['answer'].strip()
        if not q or not a:
            raise MalformedResponseError('Invalid card: question and answer must be non-empty')
        if len(q) > MAX_TEXT_LENGTH or len(a) > MAX_TEXT_LENGTH:
            raise MalformedResponseError(f'Invalid card: question/answer exceed maximum length of {MAX_TEXT_LENGTH}')


# order matters: later validators rely on the shape checked by earlier ones
CARD_VALIDATORS: Tuple[Callable[[List[Any]], None], ...] = (
    validate_card_fields,
    validate_card_count,
    validate_card_text,
)


def parse_cards(text: str) -> List[Dict[str, Any]]:
    """Extract and validate the ``cards`` array from a raw LLM response."""
    payload = extract_json_object(text)
    cards = validate_cards_array(payload)
    for validator in CARD_VALIDATORS:
        validator(cards)
    return cards
