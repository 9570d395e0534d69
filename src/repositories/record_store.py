"""
Abstract base class for record stores.
Defines the contract for file record and parsed content persistence.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from src.models.file_record import FileRecord


class RecordStore(ABC):
    """Abstract repository interface for file record operations."""

    @abstractmethod
    def create(self, record: FileRecord) -> str:
        """Persist a new file record and return its identifier."""
        pass

    @abstractmethod
    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        """Find a file record, or None if it does not exist."""
        pass

    @abstractmethod
    def update_fields(self, file_id: str, updates: Dict[str, Any]) -> None:
        """Update a subset of fields on an existing record."""
        pass

    @abstractmethod
    def delete_by_id(self, file_id: str) -> None:
        """Delete a record together with its parsed content."""
        pass

    @abstractmethod
    def list_all(self) -> List[FileRecord]:
        """List all records, newest first, without parsed content."""
        pass

    @abstractmethod
    def save_content(self, file_id: str, rows: List[Dict[str, Any]]) -> None:
        """Store the parsed rows of a record."""
        pass

    @abstractmethod
    def find_content(self, file_id: str) -> List[Dict[str, Any]]:
        """Return the parsed rows of a record in order."""
        pass

    @abstractmethod
    def delete_content(self, file_id: str) -> None:
        """Remove any parsed rows stored for a record."""
        pass
