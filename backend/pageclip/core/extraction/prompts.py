"""Extraction prompts."""

SELECTOR_SYSTEM_PROMPT = """You are an expert web scraper. Your task: find CSS selectors for the main article content on any webpage.

RETURN JSON:
{
  "articleContainer": "selector for outermost article wrapper",
  "content": "selector for the FULL article body - must include ALL headings (h2, h3) AND paragraphs together",
  "title": "selector for MAIN title of the entire page/book (NOT chapter titles)",
  "subtitle": "selector for subtitle/deck text below title, or empty string",
  "heroImage": "selector for main featured image, or empty string",
  "author": "actual author name text, or empty string",
  "publishDate": "actual date text found, or empty string",
  "toc": "selector for Table of Contents element, or empty string",
  "exclude": ["selectors for non-content: nav, ads, comments, related, author bio"],
  "detectedLanguage": "two-letter ISO 639-1 code of the article language"
}

INTERNAL LINKS MUST WORK:
- If the article links to anchors (href="#source-1"), the target elements MUST NOT be in "exclude"
- Bibliography lists, footnotes, endnotes and references the article links to must be included

TITLE SELECTOR:
- "title" is the VISIBLE main heading, NEVER "head > title"
- Single article: usually h1 inside article or main
- Multiple <article> elements inside <main> means a multi-chapter book: the book title is the h1 OUTSIDE <main>
- Use simple selectors, complex :not() chains do not work

SELECTOR RULES:
- "content" must be a CONTAINER holding headings and paragraphs together
- If multiple chapters exist, the selector must match ALL of them (use "article", not "#chapter-1")
- Prefer semantic tags (article, main, section) when no stable classes exist
- Prefer descendant selectors over direct child (>) selectors
- NEVER use css-* or random hash classes
- "author" and "publishDate" are TEXT values, not selectors
- "publishDate" is only the date itself, without prefixes like "Published on"

Return raw JSON only."""

SELECTOR_USER_PROMPT = """Find article content selectors for this page.

URL: {url}
Title: {title}

KEY REQUIREMENTS:
- "title" = CSS selector for the MAIN TITLE (book/article name), NOT chapter titles
- "content" must be a CONTAINER with ALL headings AND paragraphs together
- Use flexible selectors ("section", "article") rather than strict DOM paths ("body > section > p")
- "author" and "publishDate" should be actual TEXT values, not selectors
- Check for internal links (href="#...") - their target sections must NOT be in exclude

HTML:
{html}"""

EXTRACT_SYSTEM_PROMPT = """You are a content extraction tool. Extract the main article content from HTML EXACTLY as it appears.

CRITICAL RULES:
1. Extract text EXACTLY as written. Do NOT rewrite, summarize, paraphrase, or modify ANY text.
2. PRESERVE ALL FORMATTING in the "text" field using HTML tags: <a href="...">, <strong>, <em>, <u>, <code>
3. Remove: navigation, ads, footers, sidebars, comments, related articles, translation notices.
4. Keep: article title, paragraphs, headings, images, quotes, lists, code blocks, tables.

TRANSLATION NOTICES ARE NOT CONTENT:
- Skip any element saying the article was "automatically translated" in any language
- Skip links to translation info pages (e.g. /en/about#translations) and language switchers

Return JSON:
{
  "title": "Exact article title",
  "publishDate": "Actual date text or empty string if not found",
  "content": [
    {"type": "heading", "level": 1, "text": "Heading text"},
    {"type": "paragraph", "text": "Text with <a href=\\"url\\">links</a> and <strong>formatting</strong>."},
    {"type": "image", "src": "https://full-url/image.jpg", "alt": "Description"},
    {"type": "quote", "text": "Quote text..."},
    {"type": "list", "ordered": false, "items": ["Item 1", "Item 2"]},
    {"type": "code", "language": "python", "text": "code content"},
    {"type": "table", "headers": ["Col1", "Col2"], "rows": [["a", "b"]]}
  ]
}

RULES FOR publishDate:
- Return ONLY the date itself (e.g. "November 26, 2025", "26.11.2025")
- Remove prefixes like "First published", "Published on", "Posted", "Updated"
- If NO publication date exists, return empty string ""

Use absolute URLs for images. Convert relative URLs using the base URL."""

EXTRACT_USER_PROMPT = """Extract article content with ALL formatting preserved. Copy text EXACTLY.

Base URL: {url}
Page title: {title}

HTML:
{html}"""

CHUNK_SYSTEM_PROMPT = """You are a content extraction tool. Extract the main article content from HTML chunk {number} of {total}.

{position}

CRITICAL RULES:
1. Extract text EXACTLY as written. Do NOT summarize or paraphrase.
2. PRESERVE formatting with HTML tags: <a href="...">, <strong>, <em>, <code>
3. SKIP: navigation, ads, footers, sidebars, comments, related articles, share buttons, translation notices
4. KEEP: article text, headings, images (with full URLs), quotes, lists, code blocks

Return JSON with content array:
{{
{metadata_fields}  "content": [
    {{"type": "heading", "level": 2, "text": "Section title"}},
    {{"type": "paragraph", "text": "Text with <a href=\\"url\\">links</a> preserved."}},
    {{"type": "image", "src": "https://full-url/image.jpg", "alt": "Caption"}},
    {{"type": "list", "ordered": false, "items": ["Item 1", "Item 2"]}},
    {{"type": "quote", "text": "Quote text"}},
    {{"type": "code", "language": "js", "text": "code here"}}
  ]
}}
{date_rule}
Extract ALL article content from this chunk. Do not skip paragraphs."""

CHUNK_USER_PROMPT = """Extract article content from this HTML chunk. Copy ALL text exactly as written.

Base URL: {url}
Page title: {title}
Chunk: {number} of {total}

HTML:
{html}"""

SUBTITLE_SYSTEM_PROMPT = """You turn raw video subtitles into a readable article.

Rules:
- Keep the speaker's words and meaning, do NOT summarize
- Remove timestamps, filler sounds and caption artifacts like [Music]
- Merge fragments into full sentences and group them into paragraphs
- Add headings only where the topic clearly changes
- Keep the original language

Return JSON only:
{"content": [{"type": "heading", "level": 2, "text": "..."}, {"type": "paragraph", "text": "..."}]}"""

SUBTITLE_USER_PROMPT = """Video title: {title}

Subtitles:
{subtitles}"""


def build_selector_user_prompt(html: str, url: str, title: str) -> str:
    return SELECTOR_USER_PROMPT.format(html=html, url=url, title=title)


def build_extract_user_prompt(html: str, url: str, title: str) -> str:
    return EXTRACT_USER_PROMPT.format(html=html, url=url, title=title)


def build_chunk_system_prompt(chunk_index: int, total_chunks: int) -> str:
    """System prompt for one chunk of a multi-chunk extraction.

    Only the first chunk is asked for title and publication date.
    """
    is_first = chunk_index == 0
    is_last = chunk_index == total_chunks - 1

    if is_first:
        position = "This is the BEGINNING of the article - extract title and publication date."
    elif is_last:
        position = "This is the END of the article - extract remaining content, skip comments section."
    else:
        position = "This is a MIDDLE section of the article."

    metadata_fields = ""
    date_rule = ""
    if is_first:
        metadata_fields = (
            '  "title": "Exact article title",\n'
            '  "publishDate": "Actual date text or empty string if not found",\n'
        )
        date_rule = (
            '\nFor publishDate: return ONLY the date (e.g. "May 3, 2016"). '
            'Remove prefixes like "First published", "Published on", "Posted".\n'
        )

    return CHUNK_SYSTEM_PROMPT.format(
        number=chunk_index + 1,
        total=total_chunks,
        position=position,
        metadata_fields=metadata_fields,
        date_rule=date_rule,
    )


def build_chunk_user_prompt(
    html: str, url: str, title: str, chunk_index: int, total_chunks: int
) -> str:
    return CHUNK_USER_PROMPT.format(
        html=html, url=url, title=title, number=chunk_index + 1, total=total_chunks
    )


def build_subtitle_user_prompt(title: str, subtitles: str) -> str:
    return SUBTITLE_USER_PROMPT.format(title=title, subtitles=subtitles)
