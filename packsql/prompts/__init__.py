"""Prompt templates and loader."""

from packsql.prompts.loader import PromptLoader

__all__ = ["PromptLoader"]
