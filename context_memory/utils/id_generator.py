"""
ID generation utilities for the context memory engine.

Provides consistent ID generation for all entity types:
- Documents: doc_xxx
- Chunks: <document_id>_chunk_N (deterministic)
- Sessions: session_xxx
- Collections: <prefix>_<project_id>
"""

import re
from uuid import NAMESPACE_URL, uuid4, uuid5

from context_memory.utils.exceptions import ValidationError

_SAFE_NAME = re.compile(r"[A-Za-z0-9_-]+")


def generate_document_id() -> str:
    """
    Generate unique Document ID.

    Returns:
        ID in format "doc_xxx" where xxx is 12 hex characters
    """
    return f"doc_{uuid4().hex[:12]}"


def generate_chunk_id(document_id: str, chunk_index: int) -> str:
    """
    Generate Chunk ID based on parent document.

    The ID is a pure function of its inputs, so re-ingesting a document
    overwrites its chunks instead of duplicating them.

    Args:
        document_id: Parent document ID
        chunk_index: Zero-based chunk index

    Returns:
        ID in format "<document_id>_chunk_N"
    """
    return f"{document_id}_chunk_{chunk_index}"


def generate_session_id() -> str:
    """
    Generate unique lifecycle session ID.

    Returns:
        ID in format "session_xxx" where xxx is 12 hex characters
    """
    return f"session_{uuid4().hex[:12]}"


def generate_point_id(chunk_id: str) -> str:
    """
    Map a chunk ID onto a stable UUID usable as a vector point ID.

    Args:
        chunk_id: Chunk identifier

    Returns:
        UUID string (uuid5 of the chunk ID)
    """
    return str(uuid5(NAMESPACE_URL, chunk_id))


def collection_name_for(prefix: str, project_id: str) -> str:
    """
    Build the per-project collection/namespace name.

    Project IDs are used verbatim, so distinct projects never share a
    collection.

    Args:
        prefix: Collection prefix from configuration
        project_id: Project identifier (letters, digits, "_" and "-")

    Returns:
        Name in format "<prefix>_<project_id>"

    Raises:
        ValidationError: If the project ID contains any other character
    """
    if not _SAFE_NAME.fullmatch(project_id):
        raise ValidationError(
            "Project ID may only contain letters, digits, '_' and '-'",
            context={"project_id": project_id},
        )
    return f"{prefix}_{project_id}" if prefix else project_id
