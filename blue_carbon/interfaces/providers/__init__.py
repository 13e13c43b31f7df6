from blue_carbon.interfaces.providers.data_storage import DataStorageProvider
from blue_carbon.interfaces.providers.ledger import LedgerProvider

__all__ = ["DataStorageProvider", "LedgerProvider"]
