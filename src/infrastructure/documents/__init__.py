from src.infrastructure.documents.in_memory import InMemoryDocumentRepository
from src.infrastructure.documents.postgres import PostgresDocumentRepository

__all__ = ["InMemoryDocumentRepository", "PostgresDocumentRepository"]
