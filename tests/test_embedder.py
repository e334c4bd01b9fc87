# =============================================================================
# Unit Tests — Embedding Gateway
# =============================================================================
#
# Batching, order preservation and blank-input handling. The OpenAI client
# is mocked; no API key or network needed.
# =============================================================================

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from report_qa.config import Settings
from report_qa.errors import EmptyInputError
from report_qa.services.embedder import EmbeddingGateway, OpenAIEmbeddingProvider


class CountingProvider:
    """Returns [len(text)] vectors and records each batch."""

    def __init__(self, max_batch_size: int) -> None:
        self.max_batch_size = max_batch_size
        self.calls: list[list[str]] = []

    def embed(self, text):
        return [float(len(text))]

    def embed_batch(self, texts):
        self.calls.append(list(texts))
        return [[float(len(t))] for t in texts]

    def dimension(self):
        return 1


class TestEmbeddingGateway:
    def test_embed_rejects_blank_text(self):
        gateway = EmbeddingGateway(CountingProvider(10))
        with pytest.raises(EmptyInputError):
            gateway.embed("   ")

    def test_embed_delegates_to_provider(self):
        gateway = EmbeddingGateway(CountingProvider(10))
        assert gateway.embed("abc") == [3.0]

    def test_batches_respect_provider_cap(self):
        provider = CountingProvider(max_batch_size=10)
        gateway = EmbeddingGateway(provider)
        texts = ["t" * (i + 1) for i in range(25)]

        vectors = gateway.embed_batch(texts)

        assert [len(call) for call in provider.calls] == [10, 10, 5]
        assert vectors == [[float(i + 1)] for i in range(25)]

    def test_configured_batch_size_lowers_cap(self):
        provider = CountingProvider(max_batch_size=100)
        gateway = EmbeddingGateway(provider, batch_size=4)
        gateway.embed_batch(["a"] * 9)
        assert [len(call) for call in provider.calls] == [4, 4, 1]

    def test_blank_entries_dropped(self):
        provider = CountingProvider(10)
        gateway = EmbeddingGateway(provider)
        vectors = gateway.embed_batch(["a", "", "  ", "bbb"])
        assert vectors == [[1.0], [3.0]]
        assert provider.calls == [["a", "bbb"]]

    def test_all_blank_makes_no_call(self):
        provider = CountingProvider(10)
        assert EmbeddingGateway(provider).embed_batch(["", " "]) == []
        assert provider.calls == []

    def test_empty_input(self):
        assert EmbeddingGateway(CountingProvider(10)).embed_batch([]) == []

    def test_dimension(self):
        assert EmbeddingGateway(CountingProvider(10)).dimension() == 1


class TestOpenAIEmbeddingProvider:
    def test_raises_without_api_key(self):
        cfg = Settings(openai_api_key="", llm_api_key=None, _env_file=None)
        with pytest.raises(ValueError, match="No API key"):
            OpenAIEmbeddingProvider(config=cfg)

    def test_response_sorted_by_index(self):
        cfg = Settings(openai_api_key="sk-test", embedding_dimensions=2, _env_file=None)
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(
            data=[
                SimpleNamespace(index=1, embedding=[0.0, 1.0]),
                SimpleNamespace(index=0, embedding=[1.0, 0.0]),
            ],
            usage=SimpleNamespace(prompt_tokens=4),
        )

        with patch("openai.OpenAI", return_value=client):
            provider = OpenAIEmbeddingProvider(config=cfg)
            vectors = provider.embed_batch(["first", "second"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs["dimensions"] == 2
        assert kwargs["input"] == ["first", "second"]
        assert provider.dimension() == 2
