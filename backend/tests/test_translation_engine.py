"""Tests for the translation engine."""

import json
from unittest.mock import MagicMock

import pytest

from pageclip.core.cancellation import CancellationToken
from pageclip.core.models import ContentType, ExtractionResult, ProcessingStage
from pageclip.core.translation.engine import TranslationEngine
from pageclip.core.translation.output_processor import OutputProcessor
from pageclip.errors import AuthenticationError, CancelledError, TransientProviderError

MARKER = "[NO_TRANSLATION_NEEDED]"


def batch_payload(request):
    return json.loads(request.user_content.split("\n", 1)[1])


def prefixing_reply(request):
    """Reply translating every text to 'FR:<text>'."""
    if request.json_response:
        return json.dumps({"translations": [f"FR:{t}" for t in batch_payload(request)]})
    return f"FR:{request.user_content}"


def marker_reply(request):
    """Reply saying every text is already in the target language."""
    if request.json_response:
        return json.dumps({"translations": [MARKER] * len(batch_payload(request))})
    return MARKER


@pytest.fixture
def make_engine(fast_policy):
    def factory(provider, chunk_size=20000):
        return TranslationEngine(
            provider,
            chunk_size=chunk_size,
            output_processor=OutputProcessor(marker=MARKER),
            retry_policy=fast_policy,
        )

    return factory


class TestTranslateText:
    """Test single text translation."""

    @pytest.mark.asyncio
    async def test_translates(self, make_provider, make_engine):
        """Test a plain reply is used."""
        engine = make_engine(make_provider(["Bonjour"]))
        assert await engine.translate_text("Hello", "French") == "Bonjour"

    @pytest.mark.asyncio
    async def test_marker_returns_original(self, make_provider, make_engine):
        """Test the sentinel short-circuits to the source text."""
        engine = make_engine(make_provider([MARKER]))
        assert await engine.translate_text("Bonjour", "French") == "Bonjour"

    @pytest.mark.asyncio
    async def test_failure_returns_original(self, make_provider, make_engine):
        """Test non-auth failures keep the source text."""
        engine = make_engine(make_provider([TransientProviderError("503", status_code=503)]))
        assert await engine.translate_text("Hello", "French") == "Hello"

    @pytest.mark.asyncio
    async def test_auth_propagates(self, make_provider, make_engine):
        """Test auth failures propagate."""
        engine = make_engine(make_provider([AuthenticationError("bad key", status_code=401)]))
        with pytest.raises(AuthenticationError):
            await engine.translate_text("Hello", "French")

    @pytest.mark.asyncio
    async def test_blank_text_skipped(self, make_provider, make_engine):
        """Test blank text makes no call."""
        provider = make_provider()
        assert await make_engine(provider).translate_text("  ", "French") == "  "
        assert provider.calls == 0


class TestTranslateBatch:
    """Test batched translation."""

    @pytest.mark.asyncio
    async def test_batch(self, make_provider, make_engine):
        """Test a well-formed batch reply."""
        provider = make_provider(['{"translations": ["Un", "Deux"]}'])
        result = await make_engine(provider).translate_batch(["One", "Two"], "French")

        assert result == ["Un", "Deux"]
        assert provider.requests[0].json_response

    @pytest.mark.asyncio
    async def test_short_reply_padded_with_originals(self, make_provider, make_engine):
        """Test a reply two items short keeps the originals for missing slots."""
        provider = make_provider(['{"translations": ["A", "B"]}'])
        result = await make_engine(provider).translate_batch(["a", "b", "c", "d"], "French")
        assert result == ["A", "B", "c", "d"]

    @pytest.mark.asyncio
    async def test_fenced_reply(self, make_provider, make_engine):
        """Test a fenced reply with trailing prose still parses."""
        provider = make_provider(['```json\n{"translations": ["Un", "Deux"]}\n```\nDone!'])
        result = await make_engine(provider).translate_batch(["One", "Two"], "French")
        assert result == ["Un", "Deux"]

    @pytest.mark.asyncio
    async def test_other_key_name(self, make_provider, make_engine):
        """Test the first list is used when the key is not 'translations'."""
        provider = make_provider(['{"result": ["Un", "Deux"]}'])
        result = await make_engine(provider).translate_batch(["One", "Two"], "French")
        assert result == ["Un", "Deux"]

    @pytest.mark.asyncio
    async def test_unparseable_reply_keeps_originals(self, make_provider, make_engine):
        """Test garbage keeps every original."""
        provider = make_provider(["Sorry, I cannot help with that."])
        result = await make_engine(provider).translate_batch(["One", "Two"], "French")
        assert result == ["One", "Two"]

    @pytest.mark.asyncio
    async def test_marker_entries(self, make_provider, make_engine):
        """Test sentinel entries keep their original."""
        provider = make_provider([json.dumps({"translations": [MARKER, "Deux"]})])
        result = await make_engine(provider).translate_batch(["Un", "Two"], "French")
        assert result == ["Un", "Deux"]


class TestTranslateMetadata:
    """Test title and author translation."""

    @pytest.mark.asyncio
    async def test_hallucinated_title_keeps_original(self, make_provider, make_engine):
        """Test a title that balloons without a usable first line is discarded."""
        long_reply = "Ceci est une très longue réponse inventée sans ponctuation " * 3
        provider = make_provider([long_reply])
        result = ExtractionResult(title="Short Title", content=[])

        await make_engine(provider).translate_metadata(result, "French")

        assert result.title == "Short Title"

    @pytest.mark.asyncio
    async def test_title_404_retried(self, make_provider, make_engine, no_sleep):
        """Test a literal '404' title reply is retried."""
        provider = make_provider(["404", "Le Titre"])
        result = ExtractionResult(title="The Title")

        await make_engine(provider).translate_metadata(result, "French")

        assert result.title == "Le Titre"
        assert provider.calls == 2
        assert no_sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_anonymous_author_dropped(self, make_provider, make_engine):
        """Test placeholder authors are cleared without a call."""
        provider = make_provider()
        result = ExtractionResult(author="Anonymous")

        await make_engine(provider).translate_metadata(result, "French")

        assert result.author == ""
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_title_and_author(self, make_provider, make_engine):
        """Test both fields are translated."""
        provider = make_provider(default=prefixing_reply)
        update_state = MagicMock()
        result = ExtractionResult(title="Title", author="Jane")

        await make_engine(provider).translate_metadata(result, "French", update_state)

        assert result.title == "FR:Title"
        assert result.author == "FR:Jane"
        update_state.assert_called_once_with(
            stage=ProcessingStage.TRANSLATING, status="Translating metadata...", progress=18
        )

    @pytest.mark.asyncio
    async def test_auth_on_title_aborts(self, make_provider, make_engine):
        """Test auth failure on metadata propagates after one call."""
        provider = make_provider([AuthenticationError("bad key", status_code=401)])
        result = ExtractionResult(title="The Title")

        with pytest.raises(AuthenticationError):
            await make_engine(provider).translate_metadata(result, "French")
        assert provider.calls == 1


class TestTranslate:
    """Test whole-result translation."""

    @pytest.mark.asyncio
    async def test_code_items_untouched(self, make_provider, make_engine, make_items):
        """Test two of three items are queued and the code item is unchanged."""
        content = make_items("Hello", "<b>World</b>", {"type": "code", "text": "x=1"})
        result = ExtractionResult(content=content)
        provider = make_provider(default=prefixing_reply)

        report = await make_engine(provider).translate(result, "French")

        assert report.total_refs == 2
        assert provider.calls == 1
        assert batch_payload(provider.requests[0]) == ["Hello", "<b>World</b>"]
        assert result.content[0].text == "FR:Hello"
        assert result.content[1].text == "FR:<b>World</b>"
        assert result.content[2].type == ContentType.CODE
        assert result.content[2].text == "x=1"

    @pytest.mark.asyncio
    async def test_already_in_target_language(self, make_provider, make_engine, make_items):
        """Test sentinel replies leave the whole result unchanged."""
        result = ExtractionResult(
            title="Le Titre",
            author="Jean",
            content=make_items("Bonjour", "Le monde", {"type": "image", "src": "a.png", "alt": "Un chat"}),
        )
        original = result.model_copy(deep=True)

        await make_engine(make_provider(default=marker_reply)).translate(result, "French")

        assert result == original

    @pytest.mark.asyncio
    async def test_failed_chunk_keeps_originals(self, make_provider, make_engine, make_items):
        """Test a failing chunk is skipped and later chunks still translate."""
        content = make_items("Alpha one", "Alpha two", "Beta one", "Beta two")
        result = ExtractionResult(content=content)
        provider = make_provider(
            [TransientProviderError("503", status_code=503), '{"translations": ["B1", "B2"]}']
        )

        report = await make_engine(provider, chunk_size=20).translate(result, "French")

        assert report.total_chunks == 2
        assert report.failed_chunks == [0]
        assert report.is_partial
        assert [item.text for item in result.content] == ["Alpha one", "Alpha two", "B1", "B2"]

    @pytest.mark.asyncio
    async def test_auth_aborts_translation(self, make_provider, make_engine, make_items):
        """Test auth failure propagates after a single call."""
        result = ExtractionResult(content=make_items("One", "Two"))
        provider = make_provider([AuthenticationError("bad key", status_code=401)])

        with pytest.raises(AuthenticationError):
            await make_engine(provider).translate(result, "French")

        assert provider.calls == 1
        assert result.content[0].text == "One"

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, make_provider, make_engine, make_items):
        """Test a cancelled token stops before any call."""
        token = CancellationToken()
        token.cancel()
        provider = make_provider(default=prefixing_reply)

        with pytest.raises(CancelledError):
            await make_engine(provider).translate(
                ExtractionResult(title="T", content=make_items("One")), "French", cancel_token=token
            )

        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_progress_monotonic(self, make_provider, make_engine, make_items):
        """Test progress moves forward through 20..60."""
        content = make_items(*[f"Paragraph number {i}" for i in range(6)])
        update_state = MagicMock()

        await make_engine(make_provider(default=prefixing_reply), chunk_size=40).translate(
            ExtractionResult(content=content), "French", update_state=update_state
        )

        progress = [c.kwargs["progress"] for c in update_state.call_args_list]
        assert progress == sorted(progress)
        assert progress[0] == 20
        assert progress[-1] == 60
        assert all(c.kwargs["stage"] == ProcessingStage.TRANSLATING for c in update_state.call_args_list)

    @pytest.mark.asyncio
    async def test_empty_content(self, make_provider, make_engine):
        """Test nothing happens without content."""
        provider = make_provider()
        report = await make_engine(provider).translate(ExtractionResult(title="T"), "French")
        assert report.total_refs == 0
        assert provider.calls == 0
