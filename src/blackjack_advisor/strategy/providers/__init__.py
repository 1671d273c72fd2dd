"""Inference transports, one per provider."""

from .base import InferenceTransport, StreamEvent, TransportError, content_to_text
from .llama_stack import LlamaStackTransport
from .ollama import OllamaTransport
from .openai_compat import OpenAICompatTransport

__all__ = [
    "InferenceTransport",
    "LlamaStackTransport",
    "OllamaTransport",
    "OpenAICompatTransport",
    "StreamEvent",
    "TransportError",
    "content_to_text",
]
