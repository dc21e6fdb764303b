"""
Tests for the word-window chunker.
"""

import pytest

from context_memory.config import ChunkingConfig, TokenizerConfig
from context_memory.core.chunking import Chunker
from context_memory.core.tokenizer import Tokenizer
from context_memory.utils.exceptions import ValidationError


@pytest.fixture
def chunker() -> Chunker:
    return Chunker(
        ChunkingConfig(chunk_size=4, chunk_overlap=1),
        Tokenizer(TokenizerConfig(provider="approximate")),
    )


def words(n: int) -> str:
    return " ".join(f"w{i}" for i in range(n))


@pytest.mark.unit
class TestChunker:
    """Test chunk boundaries, ids and validation."""

    def test_short_text_single_chunk(self, chunker):
        chunks = chunker.chunk("doc1", "A relates to B.")
        assert len(chunks) == 1
        assert chunks[0].text == "A relates to B."
        assert chunks[0].id == "doc1_chunk_0"
        assert chunks[0].ordinal == 0

    def test_overlapping_windows(self, chunker):
        chunks = chunker.chunk("doc1", words(10))

        assert [c.text for c in chunks] == [
            "w0 w1 w2 w3",
            "w3 w4 w5 w6",
            "w6 w7 w8 w9",
        ]
        assert [(c.start_word, c.end_word) for c in chunks] == [(0, 4), (3, 7), (6, 10)]

    def test_stops_at_last_word(self, chunker):
        chunks = chunker.chunk("doc1", words(7))
        assert chunks[-1].end_word == 7
        assert len(chunks) == 2

    def test_ordinals_and_ids_sequential(self, chunker):
        chunks = chunker.chunk("doc9", words(20))
        assert [c.ordinal for c in chunks] == list(range(len(chunks)))
        assert [c.id for c in chunks] == [f"doc9_chunk_{i}" for i in range(len(chunks))]
        assert all(c.document_id == "doc9" for c in chunks)

    def test_deterministic(self, chunker):
        first = chunker.chunk("doc1", words(15))
        second = chunker.chunk("doc1", words(15))
        assert [c.model_dump() for c in first] == [c.model_dump() for c in second]

    def test_every_word_covered(self, chunker):
        text = words(23)
        covered = set()
        for chunk in chunker.chunk("doc1", text):
            covered.update(range(chunk.start_word, chunk.end_word))
        assert covered == set(range(23))

    def test_token_counts_populated(self, chunker):
        chunks = chunker.chunk("doc1", words(10))
        assert all(c.token_count >= 1 for c in chunks)

    def test_overrides(self, chunker):
        chunks = chunker.chunk("doc1", words(10), chunk_size=5, chunk_overlap=0)
        assert [c.text for c in chunks] == ["w0 w1 w2 w3 w4", "w5 w6 w7 w8 w9"]

    def test_whitespace_normalized(self, chunker):
        chunks = chunker.chunk("doc1", "  a\n\nb\tc  ")
        assert chunks[0].text == "a b c"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_empty_content_rejected(self, chunker, content):
        with pytest.raises(ValidationError):
            chunker.chunk("doc1", content)

    def test_empty_document_id_rejected(self, chunker):
        with pytest.raises(ValidationError):
            chunker.chunk("  ", "text")

    @pytest.mark.parametrize("size,overlap", [(0, 0), (4, 4), (4, 5), (4, -1)])
    def test_invalid_window_rejected(self, chunker, size, overlap):
        with pytest.raises(ValidationError):
            chunker.chunk("doc1", words(10), chunk_size=size, chunk_overlap=overlap)


@pytest.mark.unit
class TestTokenizer:
    """Test token counting providers."""

    def test_approximate(self):
        tokenizer = Tokenizer(TokenizerConfig(provider="approximate", chars_per_token=4.0))
        assert tokenizer.count_tokens("") == 0
        assert tokenizer.count_tokens("abc") == 1
        assert tokenizer.count_tokens("a" * 40) == 10

    def test_tiktoken_lazy_encoder(self, monkeypatch):
        class FakeEncoding:
            def encode(self, text):
                return text.split()

        calls = []

        def fake_get_encoding(name):
            calls.append(name)
            return FakeEncoding()

        monkeypatch.setattr(
            "context_memory.core.tokenizer.tokenizer.tiktoken.get_encoding", fake_get_encoding
        )
        tokenizer = Tokenizer()
        assert tokenizer.count_tokens("one two three") == 3
        assert tokenizer.count_tokens("four") == 1
        assert calls == ["cl100k_base"]
