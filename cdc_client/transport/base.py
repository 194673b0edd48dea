"""
Transport Base Module.

Abstract collaborators the CDC client reads the change feed through. A
transport hands out consistent reads; everything observed within one read
(current checkpoint and the changes since a cursor) comes from one snapshot.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict, List, Sequence

from cdc_client.model.events import ChangeEvent, ChangeIdentifier


class ChangeRead(ABC):
    """A single consistent read of the change feed."""

    @abstractmethod
    async def earliest_id(self) -> ChangeIdentifier:
        """Earliest change identifier still retained by the server."""
        pass

    @abstractmethod
    async def current_id(self) -> ChangeIdentifier:
        """Change identifier of the latest committed transaction."""
        pass

    @abstractmethod
    async def changes_since(
        self,
        cursor: ChangeIdentifier,
        selectors: Sequence[Dict[str, Any]],
    ) -> List[ChangeEvent]:
        """
        Changes strictly after ``cursor`` that satisfy any of ``selectors``.

        Args:
            cursor: Exclusive lower bound
            selectors: Wire-encoded selector predicates

        Returns:
            Change events in server order

        Raises:
            ConnectivityError: On transport or authorization failure
            MappingError: If a returned record is malformed
        """
        pass


class CDCTransport(ABC):
    """Source of consistent reads against the change feed."""

    @abstractmethod
    def consistent_read(self) -> AsyncContextManager[ChangeRead]:
        """
        Open a consistent read.

        The returned context manager releases the read on every exit path.
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass
