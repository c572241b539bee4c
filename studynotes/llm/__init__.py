"""
LLM collaborator boundary: the text-generation protocol and its OpenAI implementation.
"""
from .client import TextLLM, OpenAITextLLM, LLMInvocationError, LLMTimeoutError, LLMTransientError

__all__ = [
	'TextLLM', 'OpenAITextLLM',
	'LLMInvocationError', 'LLMTimeoutError', 'LLMTransientError',
]
