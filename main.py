import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from studynotes import __version__
from studynotes.notes import (
    NoteStore,
    User,
    DuplicateNameError,
    UserNotFoundError,
    NoteNotFoundError,
)
from studynotes.flashcards import FlashcardGenerator, Flashcard, MalformedResponseError
from studynotes.llm import OpenAITextLLM, TextLLM, LLMInvocationError, LLMTimeoutError
from studynotes.utils import get_logger, log_error, log_request, set_request_context

LOG = get_logger()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    HOST: str = '0.0.0.0'
    PORT: int = 8000
    ENVIRONMENT: str = 'development'
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGIN: str = '*'
    OPENAI_REQUIRED_FOR_READY: bool = False


settings = Settings()

_note_store = NoteStore()


def get_note_store() -> NoteStore:
    return _note_store


def get_llm() -> TextLLM:
    return OpenAITextLLM.get_instance()


@asynccontextmanager
async def lifespan(app: FastAPI):
    LOG.info('Study notes service starting', extra={'env': settings.ENVIRONMENT})
    try:
        get_llm()
        LOG.info('OpenAITextLLM warmup triggered')
    except LLMInvocationError as e:
        LOG.warning('OpenAITextLLM warmup failed', extra={'error': str(e)})
    yield
    LOG.info('Study notes service shutting down')


app = FastAPI(title='Study Notes Service', version=__version__, description='Notes storage and flashcard generation', lifespan=lifespan)

origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.middleware('http')
async def add_request_id_and_logging(request: Request, call_next):
    # prefer incoming X-Request-ID header for cross-service tracing
    request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
    request.state.request_id = request_id
    set_request_context(request_id)
    start = time.time()
    LOG.info('http_request_start', extra={'method': request.method, 'path': request.url.path, 'request_id': request_id, 'client': request.client.host if request.client else None})
    try:
        response: Response = await call_next(request)
    except Exception as exc:
        log_error(exc, {'request_id': request_id, 'method': request.method, 'path': request.url.path})
        body = {'success': False, 'error': {'message': 'Internal server error', 'request_id': request_id}}
        return JSONResponse(status_code=500, content=body, headers={'X-Request-ID': request_id})
    duration = int((time.time() - start) * 1000)
    log_request(request_id, request.method, request.url.path, response.status_code, duration, ip=request.client.host if request.client else None)
    response.headers['X-Request-ID'] = request_id
    return response


def _error(status_code: int, error: str, details: str, request_id: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'error': error, 'details': details, 'request_id': request_id})


def _request_id(fastapi_request: Request) -> str:
    return getattr(fastapi_request.state, 'request_id', None) or os.urandom(8).hex()


class AddNoteRequest(BaseModel):
    username: str = Field('', description='Display name of the note owner')
    name: str = Field(..., description='Note name, unique per user')
    content: str = Field('', description='Free-text note content')


class NoteResponse(BaseModel):
    user: User
    name: str
    content: str


class NoteListResponse(BaseModel):
    names: List[str]


class FlashcardGenerateRequest(BaseModel):
    username: str = Field('', description='Display name of the note owner')


class FlashcardGenerateResponse(BaseModel):
    success: bool
    user: User
    cards: List[Flashcard]
    metadata: dict
    request_id: str


@app.get('/health')
async def health():
    return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat(), 'service': 'studynotes'}


@app.get('/ready')
async def ready():
    services = {'openai': 'ok' if os.getenv('OPENAI_API_KEY') else 'warn: no openai key'}
    ready_ok = not (settings.OPENAI_REQUIRED_FOR_READY and not os.getenv('OPENAI_API_KEY'))
    status_code = 200 if ready_ok else 503
    return JSONResponse(status_code=status_code, content={'status': 'ready' if ready_ok else 'not ready', 'services': services})


@app.post('/users/{user_id}/notes', response_model=NoteResponse, status_code=201)
async def add_note(user_id: int, req: AddNoteRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    user = User(id=user_id, username=req.username)
    try:
        note = get_note_store().add(user, req.name, req.content)
    except DuplicateNameError as e:
        LOG.info('note_add_duplicate', extra={'request_id': request_id, 'user_id': user_id, 'note_name': req.name})
        return _error(409, 'Duplicate note name', str(e), request_id)
    return NoteResponse(user=note.user, name=note.name, content=note.content)


@app.get('/users/{user_id}/notes', response_model=NoteListResponse)
async def list_notes(user_id: int):
    return NoteListResponse(names=get_note_store().list_names(User(id=user_id, username='')))


@app.get('/users/{user_id}/notes/{name}', response_model=NoteResponse)
async def get_note(user_id: int, name: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        note = get_note_store().get(User(id=user_id, username=''), name)
    except (UserNotFoundError, NoteNotFoundError) as e:
        return _error(404, 'Note not found', str(e), request_id)
    return NoteResponse(user=note.user, name=note.name, content=note.content)


@app.delete('/users/{user_id}/notes/{name}', status_code=204)
async def remove_note(user_id: int, name: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    try:
        get_note_store().remove(User(id=user_id, username=''), name)
    except (UserNotFoundError, NoteNotFoundError) as e:
        return _error(404, 'Note not found', str(e), request_id)
    return Response(status_code=204)


@app.post('/users/{user_id}/notes/{name}/flashcards', response_model=FlashcardGenerateResponse)
async def generate_flashcards_endpoint(user_id: int, name: str, req: FlashcardGenerateRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    user = User(id=user_id, username=req.username)
    store = get_note_store()
    LOG.info('flashcard_generation_start', extra={'request_id': request_id, 'user_id': user_id, 'note_name': name})
    start = time.time()
    try:
        note = store.get(user, name)
        flashcard_set = await FlashcardGenerator(store).generate(user, note, get_llm())
    except (UserNotFoundError, NoteNotFoundError) as e:
        return _error(404, 'Note not found', str(e), request_id)
    except MalformedResponseError as e:
        LOG.warning('flashcard_malformed_response', extra={'request_id': request_id, 'reason': e.reason})
        return _error(502, 'Malformed LLM response', str(e), request_id)
    except LLMTimeoutError as e:
        LOG.exception('flashcard_timeout', exc_info=True)
        return _error(504, 'LLM timeout', str(e), request_id)
    except LLMInvocationError as e:
        LOG.exception('flashcard_api_error', exc_info=True)
        return _error(502, 'LLM API error', str(e), request_id)
    duration_ms = int((time.time() - start) * 1000)
    metadata = {'processing_time_ms': duration_ms, 'card_count': len(flashcard_set.cards), 'note_name': name}
    LOG.info('flashcard_generation_complete', extra={'request_id': request_id, 'count': len(flashcard_set.cards), 'duration_ms': duration_ms})
    return FlashcardGenerateResponse(success=True, user=flashcard_set.user, cards=flashcard_set.cards, metadata=metadata, request_id=request_id)


if __name__ == '__main__':
    import uvicorn

    uvicorn.run(
        'main:app',
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.ENVIRONMENT == 'development',
    )
