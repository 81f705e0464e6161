"""Content data models.

This module defines the normalized document model produced by extraction,
rewritten by translation and handed to document generators.
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class ContentType(str, Enum):
    """Structural unit kinds."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST = "list"
    IMAGE = "image"
    TABLE = "table"
    CODE = "code"
    QUOTE = "quote"
    SEPARATOR = "separator"
    INFOBOX_START = "infobox_start"
    INFOBOX_END = "infobox_end"


class OutputFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    EPUB = "epub"
    FB2 = "fb2"
    MARKDOWN = "markdown"
    AUDIO = "audio"


class ExtractionMode(str, Enum):
    """How article content is located on a page."""

    AUTOMATIC = "automatic"  # DOM heuristics inside the page, no model call
    SELECTOR = "selector"  # Model finds CSS selectors, page applies them
    EXTRACT = "extract"  # Model returns the content itself

    @classmethod
    def from_value(cls, value: Optional[str]) -> "ExtractionMode":
        """Parse a mode name, defaulting to EXTRACT for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.EXTRACT


class ListItem(BaseModel):
    """Rich list entry carrying markup."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    html: str = ""


class ContentItem(BaseModel):
    """One structural unit of the document.

    All variants share one model; which fields are meaningful depends on
    ``type``. Code items are never translated.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    type: ContentType = ContentType.PARAGRAPH
    text: Optional[str] = None
    html: Optional[str] = None
    id: Optional[str] = None

    # heading
    level: Optional[int] = None

    # list
    items: Optional[List[Union[str, ListItem]]] = None
    ordered: Optional[bool] = None

    # image
    src: Optional[str] = None
    alt: Optional[str] = None
    caption: Optional[str] = None

    # table
    headers: Optional[List[str]] = None
    rows: Optional[List[List[str]]] = None

    # code
    language: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        if isinstance(value, ContentType):
            return value
        if isinstance(value, str):
            try:
                return ContentType(value.lower())
            except ValueError:
                logger.debug(f"Unknown content type '{value}', treating as paragraph")
                return ContentType.PARAGRAPH
        return value

    @property
    def is_translatable(self) -> bool:
        """Whether translation may touch this item."""
        return self.type != ContentType.CODE

    def plain_text(self) -> str:
        """Best-effort text of this item (markup kept)."""
        if self.text:
            return self.text
        if self.html:
            return self.html
        if self.items:
            return "\n".join(
                item if isinstance(item, str) else item.html for item in self.items
            )
        return ""


class ExtractionResult(BaseModel):
    """Extracted document, mutated in place by detection and translation."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    author: str = ""
    publish_date: str = Field(default="", alias="publishDate")
    content: List[ContentItem] = Field(default_factory=list)
    detected_language: Optional[str] = Field(default=None, alias="detectedLanguage")
    abstract: str = ""

    @field_validator("title", "author", "publish_date", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class SelectorSet(BaseModel):
    """Site-specific recipe for locating the article parts in markup."""

    model_config = ConfigDict(populate_by_name=True)

    article_container: str = Field(default="", alias="articleContainer")
    content: str = ""
    title: str = ""
    subtitle: str = ""
    hero_image: str = Field(default="", alias="heroImage")
    author: str = ""
    publish_date: str = Field(default="", alias="publishDate")
    toc: str = ""
    exclude: List[str] = Field(default_factory=list)
    detected_language: Optional[str] = Field(default=None, alias="detectedLanguage")

    @field_validator(
        "article_container", "content", "title", "subtitle", "hero_image",
        "author", "publish_date", "toc", mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("exclude", mode="before")
    @classmethod
    def _exclude_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        return value

    @property
    def is_usable(self) -> bool:
        """A set must name at least a content or container selector."""
        return bool(self.content or self.article_container)


class ProcessingData(BaseModel):
    """Everything one pipeline run needs from the caller."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = ""
    html: Optional[str] = None
    title: str = ""
    tab_id: Optional[int] = Field(default=None, alias="tabId")
    tab_url: Optional[str] = Field(default=None, alias="tabUrl")
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    model: str = "gpt-4o"
    mode: ExtractionMode = ExtractionMode.SELECTOR
    output_format: OutputFormat = Field(default=OutputFormat.PDF, alias="outputFormat")
    target_language: str = Field(default="auto", alias="targetLanguage")
    generate_abstract: bool = Field(default=False, alias="generateAbstract")
    use_cache: bool = Field(default=True, alias="useCache")

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: Any) -> Any:
        if isinstance(value, ExtractionMode):
            return value
        return ExtractionMode.from_value(value)


class ProcessingStage(str, Enum):
    """Coarse pipeline stages reported to the caller, in order."""

    STARTING = "starting"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    TRANSLATING = "translating"
    LOADING_IMAGES = "loading_images"
    GENERATING = "generating"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return list(ProcessingStage).index(self)


class RunStatus(str, Enum):
    """Run state machine; DONE, ERROR and CANCELLED are terminal."""

    IDLE = "idle"
    DETECTING_PAGE_TYPE = "detecting_page_type"
    EXTRACTING = "extracting"
    TRANSLATING = "translating"
    SUMMARIZING = "summarizing"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.DONE, RunStatus.ERROR, RunStatus.CANCELLED)


class ProcessingState(BaseModel):
    """Snapshot of the current run as seen by a polling caller."""

    run_status: RunStatus = RunStatus.IDLE
    stage: Optional[ProcessingStage] = None
    completed_stages: List[ProcessingStage] = Field(default_factory=list)
    status: str = "Ready"
    progress: int = 0
    is_processing: bool = False
    is_cancelled: bool = False
    start_time: Optional[float] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    result: Optional[Any] = None
