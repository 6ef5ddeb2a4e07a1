from .base import BaseSchema
from .credentials import Credential, CredentialProvider, StaticCredentialProvider
from .catalog import EnrichedProduct, CatalogItemOut, ReconcileResult
from .views import StockRow, SalesRow, SalesPeriod
from .sync import CredentialCheckResult, CatalogSyncResult, SyncRunOut, RegistryEntryOut
