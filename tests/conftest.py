import os
import pytest
from pathlib import Path

from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
# console-only logging and no backoff between retried LLM calls
os.environ.setdefault('LOG_FILE_PATH', '')
os.environ.setdefault('OPENAI_RETRY_MULTIPLIER', '0')
os.environ.setdefault('OPENAI_RETRY_ATTEMPTS', '3')


@pytest.fixture
def note_store():
    from studynotes.notes import NoteStore
    return NoteStore()


@pytest.fixture
def benny():
    from studynotes.notes import User
    return User(id=1, username='Benny')


@pytest.fixture
def charlie():
    from studynotes.notes import User
    return User(id=3, username='Charlie')


@pytest.fixture
def generator(note_store):
    from studynotes.flashcards import FlashcardGenerator
    return FlashcardGenerator(note_store, subject='Torah')


@pytest.fixture
def api_client(monkeypatch):
    """TestClient bound to a fresh note store; tests install their own LLM via `install_llm`."""
    from fastapi.testclient import TestClient
    from studynotes.notes import NoteStore
    import main as app_main

    monkeypatch.setattr(app_main, '_note_store', NoteStore())
    return TestClient(app_main.app)


@pytest.fixture
def install_llm(monkeypatch):
    import main as app_main

    def _install(llm):
        monkeypatch.setattr(app_main, 'get_llm', lambda: llm)
        return llm

    return _install
