"""Tests for page type detection."""

import pytest

from pageclip.core.extraction.page_type import (
    CHROME_PDF_VIEWER_PREFIX,
    PageType,
    VideoInfo,
    detect_page_type,
    detect_pdf_page,
    detect_video_platform,
    is_pdf_url,
)

VIEWER_URL = CHROME_PDF_VIEWER_PREFIX + "index.html?file=https%3A%2F%2Fexample.com%2Fpaper.pdf"


class TestPdfDetection:
    """Test PDF recognition."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/paper.PDF", True),
            ("https://example.com/paper.pdf?download=1", True),
            ("https://example.com/get?type=pdf", True),
            ("https://example.com/article", False),
            (None, False),
        ],
    )
    def test_is_pdf_url(self, url, expected):
        """Test extension, path and query hints."""
        assert is_pdf_url(url) is expected

    def test_direct_pdf(self):
        """Test a plain PDF URL is its own file URL."""
        info = detect_pdf_page("https://example.com/paper.pdf")
        assert info.original_url == "https://example.com/paper.pdf"

    def test_viewer_recovers_file_url(self):
        """Test the file URL is recovered from the browser viewer."""
        info = detect_pdf_page(VIEWER_URL, VIEWER_URL)
        assert info.original_url == "https://example.com/paper.pdf"

    def test_viewer_without_file(self):
        """Test the viewer is a PDF page even without a file parameter."""
        info = detect_pdf_page("", CHROME_PDF_VIEWER_PREFIX + "index.html")
        assert info is not None
        assert info.original_url is None

    def test_not_pdf(self):
        """Test articles are not PDFs."""
        assert detect_pdf_page("https://example.com/post", "https://example.com/post") is None


class TestVideoDetection:
    """Test video platform recognition."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.youtube.com/watch?v=abc123&t=10", VideoInfo("youtube", "abc123")),
            ("https://youtu.be/xyz789?si=share", VideoInfo("youtube", "xyz789")),
            ("https://www.youtube.com/shorts/short1", VideoInfo("youtube", "short1")),
            ("https://vimeo.com/123456", VideoInfo("vimeo", "123456")),
            ("https://example.com/watch?v=abc", None),
            (None, None),
        ],
    )
    def test_platforms(self, url, expected):
        """Test YouTube and Vimeo URL forms."""
        assert detect_video_platform(url) == expected


class TestDetectPageType:
    """Test the combined classification."""

    def test_types(self):
        """Test PDF, video and article classification."""
        assert detect_page_type("https://example.com/a.pdf") == PageType.PDF
        assert detect_page_type("", VIEWER_URL) == PageType.PDF
        assert detect_page_type("https://www.youtube.com/watch?v=abc") == PageType.VIDEO
        assert detect_page_type("https://example.com/post") == PageType.ARTICLE
