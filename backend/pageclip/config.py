"""Application configuration."""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    # Application
    app_name: str = "pageclip"
    debug: bool = False

    # Retry policy (milliseconds, attempt n uses delays[n], last entry repeats)
    retry_max_attempts: int = 8
    retry_delays_ms: List[int] = [2000, 5000, 10000, 20000, 30000, 60000, 120000, 300000]
    translation_retry_delays_ms: List[int] = [2000, 5000, 10000, 20000, 30000]
    retryable_status_codes: List[int] = [429, 500, 502, 503, 504]
    retry_network_errors: bool = True
    retry_min_delay_ms: int = 100
    retry_jitter: float = 0.2

    # Provider calls
    api_timeout_seconds: float = 7200.0  # Long articles and slow reasoning models

    # Extraction
    chunk_size: int = 50000  # HTML chars per AI extraction chunk
    chunk_overlap: int = 3000
    max_html_for_analysis: int = 450000
    max_html_for_analysis_small: int = 200000  # deepseek/qwen context windows
    extraction_timeout_seconds: float = 30.0

    # Translation
    translation_chunk_size: int = 20000  # chars per translation request
    no_translation_marker: str = "[NO_TRANSLATION_NEEDED]"
    hallucination_ratio: float = 3.0
    hallucination_max_length: int = 200

    # Language detection
    detection_sample_chars: int = 30000

    # Selector cache
    use_selector_cache: bool = True
    enable_selector_caching: bool = True
    max_cached_domains: int = 100
    min_success_for_trust: int = 2

    # LLM API Keys (optional defaults when a run does not pass a credential)
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    xai_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    dashscope_api_key: Optional[str] = None  # Alibaba Qwen
    openrouter_api_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PAGECLIP_",
    )

    def api_key_for(self, provider: str) -> Optional[str]:
        """Get the configured API key for a provider name."""
        key_fields = {
            "openai": self.openai_api_key,
            "claude": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
            "grok": self.xai_api_key,
            "deepseek": self.deepseek_api_key,
            "qwen": self.dashscope_api_key,
            "openrouter": self.openrouter_api_key,
        }
        return key_fields.get(provider)


settings = Settings()
