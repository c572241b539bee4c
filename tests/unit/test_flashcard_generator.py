import asyncio
import json
import pytest

from studynotes.flashcards import (
    Flashcard,
    FlashcardGenerator,
    FlashcardSet,
    MalformedResponseError,
    AMBIGUOUS_ANSWER,
    build_prompt,
)
from studynotes.llm import LLMInvocationError, LLMTimeoutError
from studynotes.notes import Note, NoteNotFoundError, NoteStore, User
from tests.fixtures.mock_llm import FakeLLM, FailingLLM, InstructionFollowingLLM, SINGLE_CARD_RESPONSE, cards_json
from tests.fixtures.sample_data import BRACHOS_NOTES, GIBBERISH_NOTES


def _run(coro):
    return asyncio.run(coro)


@pytest.mark.unit
def test_prompt_embeds_content_and_rules():
    prompt = build_prompt(BRACHOS_NOTES, 'Torah')
    assert BRACHOS_NOTES in prompt
    assert '"cards"' in prompt
    assert 'up to 25 cards' in prompt
    assert AMBIGUOUS_ANSWER in prompt
    assert 'If the notes do not relate to Torah, return zero cards.' in prompt
    assert 'If nothing is provided in the notes, do not create any cards.' in prompt


@pytest.mark.unit
def test_prompt_subject_is_configurable():
    prompt = build_prompt('notes', 'Organic Chemistry')
    assert 'flashcard generator for Organic Chemistry study' in prompt
    assert 'Torah' not in prompt


@pytest.mark.unit
def test_prompt_keeps_braces_in_content_verbatim():
    content = 'set = {a, b} and {"k": 1}'
    assert content in build_prompt(content)


@pytest.mark.unit
def test_generate_round_trip_drops_id(generator, note_store, benny):
    note = note_store.add(benny, 'Brachos Summary', BRACHOS_NOTES)
    llm = FakeLLM(SINGLE_CARD_RESPONSE)
    result = _run(generator.generate(benny, note, llm))
    assert isinstance(result, FlashcardSet)
    assert result.user == benny
    assert result.cards == [Flashcard(question='Q1', answer='A1')]
    assert result.cards[0].model_dump() == {'question': 'Q1', 'answer': 'A1'}
    assert len(llm.prompts) == 1
    assert BRACHOS_NOTES in llm.prompts[0]


@pytest.mark.unit
def test_generate_keeps_order_and_values(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    response = json.dumps({'cards': [
        {'id': 1, 'question': ' When is tzeis? ', 'answer': 'When the Kohanim eat trumah'},
        {'id': 2, 'question': 'Who says chatzos?', 'answer': AMBIGUOUS_ANSWER},
    ]})
    result = _run(generator.generate(benny, note, FakeLLM('Here:\n' + response)))
    assert [c.question for c in result.cards] == [' When is tzeis? ', 'Who says chatzos?']
    assert result.cards[1].answer == AMBIGUOUS_ANSWER


@pytest.mark.unit
def test_generate_accepts_max_cards(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    result = _run(generator.generate(benny, note, FakeLLM(cards_json(25))))
    assert len(result.cards) == 25
    for card in result.cards:
        assert card.question.strip() and len(card.question) <= 2000
        assert card.answer.strip() and len(card.answer) <= 2000


@pytest.mark.unit
def test_generate_empty_notes_yields_zero_cards(generator, note_store, charlie):
    note = note_store.add(charlie, 'Empty Notes', '')
    result = _run(generator.generate(charlie, note, InstructionFollowingLLM()))
    assert result.cards == []
    assert result.user == charlie


@pytest.mark.unit
def test_generate_gibberish_yields_zero_cards(generator, note_store):
    david = User(id=4, username='David')
    note = note_store.add(david, 'Gibberish Notes', GIBBERISH_NOTES)
    result = _run(generator.generate(david, note, InstructionFollowingLLM()))
    assert result.cards == []


@pytest.mark.unit
def test_generate_relevant_notes_yields_cards(generator, note_store, benny):
    note = note_store.add(benny, 'Brachos Summary', BRACHOS_NOTES)
    result = _run(generator.generate(benny, note, InstructionFollowingLLM()))
    assert len(result.cards) == 3


@pytest.mark.unit
def test_generate_not_json_fails(generator, note_store, benny):
    note = note_store.add(benny, 'n', 'x')
    with pytest.raises(MalformedResponseError):
        _run(generator.generate(benny, note, FakeLLM('not json at all')))


@pytest.mark.unit
def test_generate_thirty_cards_fails(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    with pytest.raises(MalformedResponseError) as exc:
        _run(generator.generate(benny, note, FakeLLM(cards_json(30))))
    assert '25' in exc.value.reason


@pytest.mark.unit
def test_generate_oversized_answer_fails(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    response = cards_json(2, answer='x' * 2001)
    with pytest.raises(MalformedResponseError):
        _run(generator.generate(benny, note, FakeLLM(response)))


@pytest.mark.unit
def test_generate_stale_note_fails_before_calling_llm(generator, note_store, benny):
    note_store.add(benny, 'keep', 'k')
    note = note_store.add(benny, 'Brachos Summary', BRACHOS_NOTES)
    note_store.remove(benny, 'Brachos Summary')
    llm = FakeLLM(SINGLE_CARD_RESPONSE)
    with pytest.raises(NoteNotFoundError):
        _run(generator.generate(benny, note, llm))
    assert llm.prompts == []


@pytest.mark.unit
def test_generate_note_never_stored_fails(generator, benny):
    note = Note(user=benny, name='ghost', content='boo')
    with pytest.raises(NoteNotFoundError):
        _run(generator.generate(benny, note, FakeLLM()))


@pytest.mark.unit
def test_generate_checks_ownership_for_requesting_user(generator, note_store, benny, charlie):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    with pytest.raises(NoteNotFoundError):
        _run(generator.generate(charlie, note, FakeLLM()))


@pytest.mark.unit
def test_generate_does_not_mutate_store(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    _run(generator.generate(benny, note, FakeLLM(SINGLE_CARD_RESPONSE)))
    assert note_store.list_names(benny) == ['n']
    assert note_store.get(benny, 'n') == note


@pytest.mark.unit
def test_llm_invocation_error_propagates_unmodified(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    err = LLMTimeoutError('upstream timed out')
    llm = FailingLLM(err)
    with pytest.raises(LLMTimeoutError) as exc:
        _run(generator.generate(benny, note, llm))
    assert exc.value is err
    assert llm.calls == 1


@pytest.mark.unit
def test_foreign_collaborator_error_surfaces_as_invocation_error(generator, note_store, benny):
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    cause = ConnectionError('quota exceeded')
    with pytest.raises(LLMInvocationError) as exc:
        _run(generator.generate(benny, note, FailingLLM(cause)))
    assert exc.value.__cause__ is cause
    assert 'quota exceeded' in str(exc.value)


@pytest.mark.unit
def test_generate_is_repeatable(note_store, benny):
    gen = FlashcardGenerator(note_store)
    note = note_store.add(benny, 'n', BRACHOS_NOTES)
    llm = FakeLLM(cards_json(1), cards_json(2))
    first = _run(gen.generate(benny, note, llm))
    second = _run(gen.generate(benny, note, llm))
    assert len(first.cards) == 1
    assert len(second.cards) == 2


@pytest.mark.unit
def test_default_subject_from_env_constant(note_store, benny):
    import studynotes.flashcards.generator as generator_mod
    gen = FlashcardGenerator(NoteStore())
    assert gen.subject == generator_mod.FLASHCARD_SUBJECT

    note = note_store.add(benny, 'n', 'x')
    llm = FakeLLM()
    _run(FlashcardGenerator(note_store).generate(benny, note, llm))
    assert f'do not relate to {generator_mod.FLASHCARD_SUBJECT}' in llm.prompts[0]
