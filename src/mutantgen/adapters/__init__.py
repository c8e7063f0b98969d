# Copyright (c) Syntropy Systems
"""Built-in capability adapters."""

from .llm import AzureOpenAIGenerator, OpenAIGenerator
from .mutation import CommandAnalyzer, RawAnalysis, StrykerAnalyzer
from .storage import FileSystemStorage, MemoryStorage

__all__ = [
    "AzureOpenAIGenerator",
    "CommandAnalyzer",
    "FileSystemStorage",
    "MemoryStorage",
    "OpenAIGenerator",
    "RawAnalysis",
    "StrykerAnalyzer",
]
