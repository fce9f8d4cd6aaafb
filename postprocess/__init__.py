"""Nachbearbeitung finaler Transkripte (Übersetzung, Snippets, Wörterbuch)."""

from .dictionary import Correction, Dictionary, load_dictionary, save_dictionary
from .pipeline import PostProcessingPipeline, Translator
from .snippets import Snippet, SnippetExpander, load_snippets
from .translation import LLMTranslator

__all__ = [
    "Correction",
    "Dictionary",
    "LLMTranslator",
    "PostProcessingPipeline",
    "Snippet",
    "SnippetExpander",
    "Translator",
    "load_dictionary",
    "load_snippets",
    "save_dictionary",
]
