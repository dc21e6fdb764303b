"""
Per-project document records.

Chunks live in the vector store and relationships in the graph store; the
repository keeps the Document itself (metadata, source and processing status)
so callers can inspect outcomes and delete documents by ID.
"""

from abc import ABC, abstractmethod

from context_memory.models.document import Document


class DocumentRepository(ABC):
    """Storage for Document records, scoped by project."""

    @abstractmethod
    async def save(self, project_id: str, document: Document) -> None:
        pass

    @abstractmethod
    async def get(self, project_id: str, document_id: str) -> Document | None:
        pass

    @abstractmethod
    async def delete(self, project_id: str, document_id: str) -> bool:
        """Delete a record; returns False if it did not exist."""
        pass

    @abstractmethod
    async def list(self, project_id: str) -> list[Document]:
        pass

    @abstractmethod
    async def count(self, project_id: str) -> int:
        pass


class InMemoryDocumentRepository(DocumentRepository):
    """Process-local repository; records outlive project stop/start."""

    def __init__(self):
        self._documents: dict[str, dict[str, Document]] = {}

    async def save(self, project_id: str, document: Document) -> None:
        self._documents.setdefault(project_id, {})[document.id] = document.model_copy(deep=True)

    async def get(self, project_id: str, document_id: str) -> Document | None:
        document = self._documents.get(project_id, {}).get(document_id)
        return document.model_copy(deep=True) if document else None

    async def delete(self, project_id: str, document_id: str) -> bool:
        return self._documents.get(project_id, {}).pop(document_id, None) is not None

    async def list(self, project_id: str) -> list[Document]:
        documents = self._documents.get(project_id, {}).values()
        return [doc.model_copy(deep=True) for doc in sorted(documents, key=lambda d: d.created_at)]

    async def count(self, project_id: str) -> int:
        return len(self._documents.get(project_id, {}))
