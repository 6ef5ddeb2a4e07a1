from .catalog import CatalogItem
from .placement import PlacementRow
from .api_archive import EndpointRegistryEntry, RawExchangeRecord
from .sync_run import SyncRunLog

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'CatalogItem',
    'PlacementRow',
    'EndpointRegistryEntry',
    'RawExchangeRecord',
    'SyncRunLog',
]
