"""Page type detection: article, PDF document or video."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

CHROME_PDF_VIEWER_PREFIX = "chrome-extension://mhjfbmdgcfjbbpaeojofohoefgiehjai/"

YOUTUBE_PATTERNS = [
    re.compile(r"^https?://(www\.)?(youtube\.com|youtu\.be)/.+"),
    re.compile(r"youtube\.com/watch\?v=([^&]+)"),
    re.compile(r"youtu\.be/([^?]+)"),
]
VIMEO_PATTERN = re.compile(r"^https?://(www\.)?vimeo\.com/\d+")
VIEWER_FILE_PARAM = re.compile(r"[?&]file=([^&]+)")


class PageType(str, Enum):
    ARTICLE = "article"
    PDF = "pdf"
    VIDEO = "video"


@dataclass
class VideoInfo:
    platform: str
    video_id: str


@dataclass
class PdfInfo:
    """Detected PDF page; ``original_url`` is None inside the browser viewer
    when the file URL could not be recovered."""

    original_url: Optional[str]


def is_pdf_url(url: Optional[str]) -> bool:
    if not url:
        return False
    lower = url.lower()
    if lower.endswith(".pdf"):
        return True
    if urlparse(lower).path.endswith(".pdf"):
        return True
    return "content-type=application/pdf" in lower or "type=pdf" in lower


def is_chrome_pdf_viewer(tab_url: Optional[str]) -> bool:
    return bool(tab_url) and tab_url.startswith(CHROME_PDF_VIEWER_PREFIX)


def detect_pdf_page(url: Optional[str], tab_url: Optional[str] = None) -> Optional[PdfInfo]:
    """Detect a PDF document by its URL or by the browser's PDF viewer.

    Args:
        url: Page URL
        tab_url: Tab URL, which differs from ``url`` inside the PDF viewer

    Returns:
        PdfInfo, or None for non-PDF pages
    """
    # The viewer URL carries the encoded file URL, so it is checked first
    viewer_url = next((u for u in (tab_url, url) if is_chrome_pdf_viewer(u)), None)
    if viewer_url:
        match = VIEWER_FILE_PARAM.search(viewer_url)
        if match:
            original_url = unquote(match.group(1))
            if is_pdf_url(original_url):
                return PdfInfo(original_url=original_url)
        return PdfInfo(original_url=None)

    if is_pdf_url(url):
        return PdfInfo(original_url=url)

    return None


def detect_video_platform(url: Optional[str]) -> Optional[VideoInfo]:
    """Recognize YouTube and Vimeo video pages.

    Returns:
        VideoInfo with platform and video id, or None
    """
    if not url:
        return None

    for pattern in YOUTUBE_PATTERNS:
        if not pattern.search(url):
            continue
        if "youtu.be/" in url:
            video_id = url.split("youtu.be/", 1)[1].split("?")[0].split("/")[0]
        elif "watch?v=" in url:
            video_id = url.split("v=", 1)[1].split("&")[0]
        else:
            video_id = url.rstrip("/").split("/")[-1].split("?")[0]
        if video_id:
            return VideoInfo(platform="youtube", video_id=video_id)

    if VIMEO_PATTERN.search(url):
        match = re.search(r"/(\d+)", url)
        if match:
            return VideoInfo(platform="vimeo", video_id=match.group(1))

    return None


def detect_page_type(url: Optional[str], tab_url: Optional[str] = None) -> PageType:
    if detect_pdf_page(url, tab_url):
        return PageType.PDF
    if detect_video_platform(url):
        return PageType.VIDEO
    return PageType.ARTICLE
