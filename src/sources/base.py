"""Abstract base class for identity source adapters."""

from abc import ABC, abstractmethod

from src.core.schemas import RawMatch, SearchParams


class SourceAdapter(ABC):
    """Contract every identity data source implements.

    Adapters carry no shared state; each owns its own connection and
    credentials. ``search`` returns an empty list for "no results" and for
    its own timeouts or transport errors.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier for this source (e.g. 'voter_record')."""

    @property
    @abstractmethod
    def tier(self) -> int:
        """Expected latency class.

        1 = local, under 100 ms; 2 = remote, 1-3 s; 3 = remote, 2-5 s;
        4 = remote, 5-30 s.
        """

    @abstractmethod
    async def search(self, params: SearchParams) -> list[RawMatch]:
        """Run a search and return raw (unscored) matches."""

    @abstractmethod
    async def is_available(self) -> bool:
        """Cheap health/configuration check."""
