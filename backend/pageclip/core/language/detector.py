"""Source language detection.

Two tiers: an offline character-class heuristic that always answers, and a
model call used only when a credential is available. The model answer must be
a bare two-letter code; anything else falls back to the heuristic.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from ...config import settings
from ...errors import PipelineError, is_auth_error
from ...utils.text import safe_truncate, strip_html
from ..llm.models import ModelRequest
from ..llm.providers import ModelProvider, create_provider
from ..models import ContentItem

logger = logging.getLogger(__name__)

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "ru": "Russian",
    "ua": "Ukrainian",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "pl": "Polish",
    "nl": "Dutch",
    "tr": "Turkish",
}

LANGUAGE_CODE_PATTERN = re.compile(r"^[a-z]{2}$")

CYRILLIC_PATTERN = re.compile(r"[а-яёА-ЯЁ]")
UKRAINIAN_PATTERN = re.compile(r"[іїєґІЇЄҐ]")
LATIN_PATTERN = re.compile(r"[a-zA-Z]")
CHINESE_PATTERN = re.compile(r"[\u4e00-\u9fff]")
JAPANESE_PATTERN = re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")
KOREAN_PATTERN = re.compile(r"[\uac00-\ud7af]")
ARABIC_PATTERN = re.compile(r"[\u0600-\u06ff]")

# Function words per Latin-script language; single letters are too ambiguous
STOPWORD_PATTERNS: Dict[str, re.Pattern] = {
    "de": re.compile(
        r"\b(der|die|das|und|ist|sind|haben|sein|werden|können|mit|für|von|auf|zu|nicht|"
        r"auch|wenn|oder|aber|dass|kann|wird|sich|nur|noch|nach|über|vor|durch|bei|gegen|"
        r"ohne|während|seit|bis|innerhalb|außerhalb|wegen|trotz|statt|anstatt)\b",
        re.IGNORECASE,
    ),
    "fr": re.compile(
        r"\b(le|la|les|et|est|sont|avoir|être|peuvent|dans|pour|avec|sans|sur|sous|par|de|"
        r"du|des|une|un|ce|que|qui|dont|où|mais|ou|car|donc|alors|puis|ensuite|toujours|"
        r"jamais|souvent|parfois|maintenant|hier|aujourd'hui|demain|ici|là|comment|"
        r"pourquoi|combien|quel|quelle|quels|quelles)\b",
        re.IGNORECASE,
    ),
    "es": re.compile(
        r"\b(el|la|los|las|y|es|son|tener|ser|estar|pueden|con|por|para|de|del|en|sobre|"
        r"bajo|entre|desde|hasta|durante|mediante|según|contra|sin|ante|tras|mientras|"
        r"aunque|pero|o|ni|sino|también|tampoco|así|entonces|ahora|aquí|allí|allá|dónde|"
        r"cuándo|cómo|por qué|cuánto|cuánta|cuántos|cuántas|qué|quién|quiénes)\b",
        re.IGNORECASE,
    ),
    "it": re.compile(
        r"\b(il|la|lo|gli|le|e|è|sono|avere|essere|possono|con|per|di|del|della|dei|delle|"
        r"in|su|sotto|sopra|tra|fra|da|dal|dalla|dai|dalle|verso|durante|mentre|prima|dopo|"
        r"quando|dove|come|perché|perchè|quanto|quanta|quanti|quante|che|chi|cosa|ma|o|"
        r"anche|pure|ancora|già|sempre|mai|spesso|raramente|oggi|ieri|domani|qui|qua|là)\b",
        re.IGNORECASE,
    ),
    "pt": re.compile(
        r"\b(o|a|os|as|e|é|são|ter|ser|estar|podem|com|para|de|do|da|dos|das|em|no|na|nos|"
        r"nas|sobre|sob|entre|até|durante|mediante|segundo|contra|sem|ante|após|atrás|"
        r"enquanto|embora|mas|ou|nem|também|ainda|já|sempre|nunca|muitas vezes|raramente|"
        r"hoje|ontem|amanhã|aqui|ali|aí|onde|quando|como|por quê|porque|quanto|quanta|"
        r"quantos|quantas|que|quem|o que|qual|quais)\b",
        re.IGNORECASE,
    ),
    "en": re.compile(
        r"\b(the|and|is|are|have|has|been|will|would|could|should|this|that|with|from|for|"
        r"about|into|through|during|including|against|among|throughout|despite|towards|"
        r"upon|concerning|to|of|in|on|at|by|as|but|or|if|when|where|how|why|what|which|who|"
        r"whom|whose|while|although|because|since|until|unless|before|after|above|below|"
        r"between|within|without|across|around|behind|beside|beyond|inside|outside|under|"
        r"over|near|far|here|there|now|then|always|never|often|sometimes|usually|today|"
        r"yesterday|tomorrow)\b",
        re.IGNORECASE,
    ),
}

DETECTION_SYSTEM_PROMPT = """You are a language detection agent. Your task is to identify the language of the provided text.

INSTRUCTIONS:
1. Read the text carefully
2. Determine what language the MAIN CONTENT is written in
3. Ignore any English words that might appear (like technical terms, names, URLs)
4. Return ONLY the ISO 639-1 two-letter language code

SUPPORTED CODES:
{codes}

OUTPUT FORMAT: Return ONLY the 2-letter code, nothing else. No quotes, no explanation.

Example outputs: ru, en, ua, de"""


def detect_language_by_characters(text: str) -> str:
    """Detect language from character classes and stop words.

    Args:
        text: Plain text to analyze

    Returns:
        Language code, ``en`` when uncertain
    """
    if not text or len(text) < 50:
        return "en"

    cyrillic = len(CYRILLIC_PATTERN.findall(text))
    ukrainian = len(UKRAINIAN_PATTERN.findall(text))
    latin = len(LATIN_PATTERN.findall(text))
    chinese = len(CHINESE_PATTERN.findall(text))
    japanese = len(JAPANESE_PATTERN.findall(text))
    korean = len(KOREAN_PATTERN.findall(text))
    arabic = len(ARABIC_PATTERN.findall(text))

    total = cyrillic + latin + chinese + japanese + korean + arabic
    if total < 20:
        return "en"

    # Scripts with unique character sets first
    if chinese > total * 0.3:
        return "zh"
    if japanese > total * 0.2:
        return "ja"
    if korean > total * 0.3:
        return "ko"
    if arabic > total * 0.3:
        return "ar"

    if cyrillic / total > 0.5:
        return "ua" if ukrainian > 3 else "ru"

    sample = text[:10000]
    best_code = "en"
    best_count = 0
    for code, pattern in STOPWORD_PATTERNS.items():
        count = len(pattern.findall(sample))
        if count > best_count:
            best_code, best_count = code, count

    threshold = max(10, len(sample) // 1000)
    if best_count < threshold:
        return "en"
    return best_code


def collect_text(content: Sequence[ContentItem], limit: Optional[int] = None) -> str:
    """Join the stripped text of content items, skipping code.

    Args:
        content: Content items
        limit: Stop collecting once this many characters are gathered

    Returns:
        Space-joined plain text
    """
    parts: List[str] = []
    length = 0
    for item in content:
        if not item.is_translatable:
            continue
        for piece in (item.text or item.html, item.alt):
            if not piece:
                continue
            stripped = strip_html(piece)
            if stripped:
                parts.append(stripped)
                length += len(stripped) + 1
        if limit is not None and length > limit:
            break
    text = " ".join(parts).strip()
    return text[:limit] if limit is not None else text


def detect_source_language(content: Optional[Sequence[ContentItem]]) -> str:
    """Offline detection over a content list; ``unknown`` when there is no text."""
    if not content:
        return "unknown"
    text = collect_text(content)
    if not text:
        return "unknown"
    return detect_language_by_characters(text)


class LanguageDetector:
    """Detects the language of extracted content.

    Uses the model when a credential is available, otherwise (or when the
    model misbehaves) the character heuristic.
    """

    def __init__(
        self,
        provider: Optional[ModelProvider] = None,
        sample_chars: Optional[int] = None,
    ):
        """Initialize detector.

        Args:
            provider: Model provider; created per call from api_key/model if None
            sample_chars: Maximum characters sent to the model
        """
        self._provider = provider
        self.sample_chars = sample_chars or settings.detection_sample_chars

    def _resolve_provider(self, api_key: Optional[str], model: Optional[str]) -> Optional[ModelProvider]:
        if self._provider is not None:
            return self._provider
        if not api_key or not model:
            return None
        return create_provider(model, api_key)

    async def detect(
        self,
        content: Optional[Sequence[ContentItem]],
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        """Detect the content language.

        Args:
            content: Content items
            api_key: Provider credential, enables the model path
            model: Model identifier

        Returns:
            Two-letter language code

        Raises:
            AuthenticationError: Credential rejected by the provider
        """
        if not content:
            return "en"

        sample = collect_text(content, limit=self.sample_chars)
        if not sample:
            return "en"

        provider = self._resolve_provider(api_key, model)
        if provider is None:
            return detect_language_by_characters(sample)

        codes = "\n".join(f"- {code} = {name}" for code, name in LANGUAGE_NAMES.items())
        request = ModelRequest(
            system_instruction=DETECTION_SYSTEM_PROMPT.format(codes=codes),
            user_content=f"Detect the language of this text:\n\n{sample}",
            temperature=0,
            max_tokens=10,
        )

        try:
            response = await provider.complete(request)
        except PipelineError as e:
            if is_auth_error(e):
                raise
            logger.warning(f"Language detection call failed, using character analysis: {e}")
            return detect_language_by_characters(sample)

        code = response.content.strip().strip("\"'`.").lower()
        if LANGUAGE_CODE_PATTERN.match(code):
            logger.info(f"Detected language: {code}")
            return code

        logger.warning(
            f"Invalid language code from model: {safe_truncate(response.content, 50)!r}, "
            f"using character analysis"
        )
        return detect_language_by_characters(sample)
