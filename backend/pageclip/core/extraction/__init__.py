"""Content extraction.

- selector_cache: Per-domain cache of proven selectors
- strategies: Strategy selection and the page-context collaborators
- page_type: PDF and video page detection
"""

from .page_type import PageType, detect_page_type, detect_video_platform, is_pdf_url
from .selector_cache import SelectorCache
from .strategies import (
    ExtractionStrategySelector,
    PageExtraction,
    PageExtractor,
    PdfExtractor,
    VideoTranscript,
    VideoTranscriptSource,
)

__all__ = [
    "PageType",
    "detect_page_type",
    "detect_video_platform",
    "is_pdf_url",
    "SelectorCache",
    "ExtractionStrategySelector",
    "PageExtraction",
    "PageExtractor",
    "PdfExtractor",
    "VideoTranscript",
    "VideoTranscriptSource",
]
