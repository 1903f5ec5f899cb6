"""Adapter-layer invokers that issue prepared requests to providers."""

from .litellm_adapter import LiteLLMInvoker, normalize_response

__all__ = ["LiteLLMInvoker", "normalize_response"]
