"""Text-generation collaborator used by the flashcard generator.

Provides:
- TextLLM protocol: the single ``execute_text(prompt) -> str`` coroutine the
  generator depends on
- OpenAITextLLM singleton wrapping the OpenAI chat completions API with retries

Custom exceptions: LLMInvocationError, LLMTimeoutError, LLMTransientError
"""
from __future__ import annotations

import os
import time
from typing import Optional, Protocol

import openai
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from studynotes.utils import get_logger, get_request_context, log_llm_call

LOG = get_logger()


# Exceptions
class LLMInvocationError(Exception):
    pass


class LLMTimeoutError(LLMInvocationError):
    pass


class LLMTransientError(LLMInvocationError):
    pass


class TextLLM(Protocol):
    async def execute_text(self, prompt: str) -> str:
        ...


# Env
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_MAX_TOKENS = int(os.getenv('OPENAI_MAX_TOKENS', '4000'))
OPENAI_TEMPERATURE = float(os.getenv('OPENAI_TEMPERATURE', '0.2'))
OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', '60'))
OPENAI_RETRY_ATTEMPTS = int(os.getenv('OPENAI_RETRY_ATTEMPTS', '3'))
OPENAI_RETRY_MULTIPLIER = float(os.getenv('OPENAI_RETRY_MULTIPLIER', '2'))
OPENAI_RETRY_MAX_WAIT = float(os.getenv('OPENAI_RETRY_MAX_WAIT', '10'))


class OpenAITextLLM:
    _instance = None

    def __init__(self, client: Optional[openai.AsyncOpenAI] = None):
        if client is None:
            key = os.getenv('OPENAI_API_KEY')
            if not key:
                raise LLMInvocationError('OPENAI_API_KEY not set')
            client = openai.AsyncOpenAI(api_key=key, timeout=OPENAI_TIMEOUT, max_retries=0)
        self._client = client
        self.model = OPENAI_MODEL
        self.temperature = OPENAI_TEMPERATURE
        self.max_tokens = OPENAI_MAX_TOKENS
        LOG.info('OpenAITextLLM initialized', extra={'model': self.model})

    @classmethod
    def get_instance(cls) -> 'OpenAITextLLM':
        if cls._instance is None:
            cls._instance = OpenAITextLLM()
        return cls._instance

    @retry(stop=stop_after_attempt(OPENAI_RETRY_ATTEMPTS),
           wait=wait_exponential(multiplier=OPENAI_RETRY_MULTIPLIER, max=OPENAI_RETRY_MAX_WAIT),
           retry=retry_if_exception_type((LLMTimeoutError, LLMTransientError)),
           reraise=True)
    async def _call_openai(self, prompt: str):
        start = time.time()
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=[{'role': 'user', 'content': prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        # APITimeoutError subclasses APIConnectionError, so it goes first
        except openai.APITimeoutError as e:
            LOG.warning('openai_timeout', extra={'error': str(e)})
            raise LLMTimeoutError(str(e)) from e
        except (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError) as e:
            LOG.warning('openai_transient_error', extra={'error': str(e)})
            raise LLMTransientError(str(e)) from e
        except openai.OpenAIError as e:
            LOG.exception('openai_api_error', exc_info=True)
            raise LLMInvocationError(str(e)) from e
        duration_ms = int((time.time() - start) * 1000)
        usage = getattr(resp, 'usage', None)
        log_llm_call(
            get_request_context().get('request_id'),
            self.model,
            getattr(usage, 'prompt_tokens', 0) if usage else 0,
            getattr(usage, 'completion_tokens', 0) if usage else 0,
            duration_ms,
        )
        return resp

    async def execute_text(self, prompt: str) -> str:
        resp = await self._call_openai(prompt)
        if not resp.choices:
            raise LLMInvocationError('No choices returned')
        return resp.choices[0].message.content or ''
