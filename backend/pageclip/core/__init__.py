"""Core pipeline components.

- llm/: Provider access, request models and tolerant JSON parsing
- language/: Source language detection
- translation/: Chunked, guarded translation of content
- extraction/: Selector cache and extraction strategies
- pipeline/: Processing state, summarization and orchestration
"""
