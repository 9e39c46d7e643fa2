"""Base repository interface."""
from abc import ABC, abstractmethod
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """Persistence interface shared by the storage backends."""

    @abstractmethod
    def get(self, id) -> Optional[T]:
        """Get an item by ID, or None when it does not exist."""

    @abstractmethod
    def get_all(self) -> List[T]:
        """Get all items."""
