"""
Checkpoint persistence and its document storage backends.
"""

from .checkpoint_store import CheckpointStore, HISTORY_LIMIT
from .document_storage import DocumentStorage, FileDocumentStorage, MemoryDocumentStorage
from .object_storage import ObjectDocumentStorage

__all__ = [
    'CheckpointStore',
    'HISTORY_LIMIT',
    'DocumentStorage',
    'FileDocumentStorage',
    'MemoryDocumentStorage',
    'ObjectDocumentStorage',
]
