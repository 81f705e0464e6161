"""Translation package.

- chunking: Field references and size-bounded chunks
- output_processor: Reply cleanup, sentinel and hallucination guard
- engine: TranslationEngine driving the whole step
"""

from .chunking import TextRef, TranslationChunk, build_chunks, collect_translation_refs
from .engine import TranslationEngine, TranslationReport
from .output_processor import OutputProcessor, clean_author

__all__ = [
    "TextRef",
    "TranslationChunk",
    "build_chunks",
    "collect_translation_refs",
    "TranslationEngine",
    "TranslationReport",
    "OutputProcessor",
    "clean_author",
]
