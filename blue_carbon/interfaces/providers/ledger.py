from abc import ABC, abstractmethod
from typing import Dict, Optional

from blue_carbon.domains.certificates import IssuancePayload


class LedgerProvider(ABC):
    """Interface for the append-only issuance ledger."""

    @abstractmethod
    async def write_record(self, payload: IssuancePayload) -> str:
        """Append a record and return its content hash.

        Writing an identical payload again returns the same hash without
        appending a second record.

        Raises:
            LedgerUnavailableError: Transient outage, retryable
            LedgerRejectedError: Permanent rejection
        """
        pass

    @abstractmethod
    async def get_record(self, record_hash: str) -> Optional[Dict]:
        """Look up a record by hash."""
        pass
