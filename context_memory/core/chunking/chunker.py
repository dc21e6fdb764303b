"""
Word-window chunker.

Splits document text on whitespace into windows of ``chunk_size`` words,
advancing by ``chunk_size - chunk_overlap`` words so neighbouring chunks share
context across the boundary. Output is deterministic for identical input and
configuration, which keeps chunk IDs stable across re-ingestion.
"""

from context_memory.config import ChunkingConfig
from context_memory.core.tokenizer import Tokenizer
from context_memory.models.document import Chunk
from context_memory.utils.exceptions import ValidationError
from context_memory.utils.id_generator import generate_chunk_id


class Chunker:
    """Deterministic overlapping chunker."""

    def __init__(self, config: ChunkingConfig | None = None, tokenizer: Tokenizer | None = None):
        self.config = config or ChunkingConfig()
        self.tokenizer = tokenizer or Tokenizer()

    def chunk(
        self,
        document_id: str,
        content: str,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> list[Chunk]:
        """
        Split content into ordered chunks.

        Args:
            document_id: Owning document ID (used for chunk IDs)
            content: Document text
            chunk_size: Optional override of the configured window size (words)
            chunk_overlap: Optional override of the configured overlap (words)

        Returns:
            Non-empty list of chunks ordered by ordinal

        Raises:
            ValidationError: If content is empty or the window settings are invalid
        """
        size = chunk_size if chunk_size is not None else self.config.chunk_size
        overlap = chunk_overlap if chunk_overlap is not None else self.config.chunk_overlap

        if not document_id or not document_id.strip():
            raise ValidationError("Document ID cannot be empty")
        if size < 1:
            raise ValidationError("Chunk size must be positive", context={"chunk_size": size})
        if overlap < 0 or overlap >= size:
            raise ValidationError(
                "Chunk overlap must be non-negative and smaller than chunk size",
                context={"chunk_size": size, "chunk_overlap": overlap},
            )
        if not content or not content.strip():
            raise ValidationError(
                "Document content cannot be empty", context={"document_id": document_id}
            )

        words = content.split()
        step = size - overlap
        chunks: list[Chunk] = []

        start = 0
        while True:
            end = min(start + size, len(words))
            text = " ".join(words[start:end])
            ordinal = len(chunks)
            chunks.append(
                Chunk(
                    id=generate_chunk_id(document_id, ordinal),
                    document_id=document_id,
                    ordinal=ordinal,
                    text=text,
                    token_count=self.tokenizer.count_tokens(text),
                    start_word=start,
                    end_word=end,
                )
            )
            if end >= len(words):
                break
            start += step

        return chunks
