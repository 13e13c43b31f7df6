from blue_carbon.adapters.mongodb_adapter import MongoDBAdapter
from blue_carbon.adapters.ledger_adapter import InMemoryLedgerAdapter, MongoLedgerAdapter
