"""LLM provider adapters.

Two concrete implementations of ILLMProvider (roomrag/interfaces/llm_provider.py):
    - OpenAILLMProvider -- gpt-4o-mini (also any OpenAI-compatible API)
    - OllamaLLMProvider -- local models via an Ollama server (llama3.1)

``roomrag.main.build_components`` picks OpenAI when OPENAI_API_KEY is set
and falls back to Ollama otherwise.
"""

from roomrag.providers.llm.ollama_provider import OllamaLLMProvider
from roomrag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OllamaLLMProvider", "OpenAILLMProvider"]
