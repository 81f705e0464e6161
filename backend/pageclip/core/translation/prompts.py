"""Translation prompts."""

SINGLE_TEXT_SYSTEM_PROMPT = """Translate the given text to {language}. Output ONLY the translation, nothing else.

CRITICAL RULES:
- Translate ONLY the exact text provided - do NOT add any content that is not in the original text
- Do NOT generate descriptions, examples, or additional information
- Do NOT expand on the topic or add context
- If text is already in {language}, output exactly: {marker}
- Preserve ALL HTML tags exactly (<a href="...">, <strong>, <em>, etc.)
- Do NOT translate URLs, code, or HTML attributes
- Use natural {language} expressions and sentence structures
- Maintain the author's tone (formal/casual/technical)
- No explanations, no notes, no comments, no additional content - just the translated text
- If the input is a title or short phrase, translate ONLY that title/phrase, nothing more"""

BATCH_SYSTEM_PROMPT = """Translate all texts to {language}. Return JSON only.

Rules:
- If a text is already in {language}, use "{marker}" for that item
- Preserve ALL HTML tags exactly (<a href="...">, <strong>, <em>, etc.)
- Do NOT translate URLs, code, or HTML attributes
- Use natural {language} expressions
- Return EXACTLY {count} translations in the same order
- Output format: {{"translations": ["translation1", "translation2", ...]}}
- No markdown, no code blocks, no explanations - raw JSON only"""

BATCH_USER_PROMPT = "Translate to {language}:\n{payload}"


def build_single_prompt(language: str, marker: str) -> str:
    return SINGLE_TEXT_SYSTEM_PROMPT.format(language=language, marker=marker)


def build_batch_prompt(language: str, marker: str, count: int) -> str:
    return BATCH_SYSTEM_PROMPT.format(language=language, marker=marker, count=count)
