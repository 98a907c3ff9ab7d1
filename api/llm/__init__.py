"""LLM collaborators for classification and response generation."""

from .clients import OpenAIClassifier, OpenAIResponder, PromptContext

__all__ = ["OpenAIClassifier", "OpenAIResponder", "PromptContext"]
