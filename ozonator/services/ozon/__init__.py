from .client import OzonClient
from .envelope import Envelope, extract_items, items_or_empty
from .pagination import Page, paginate
from .enrichment import ProductEnricher
from .placement import PlacementReconciler, PlacementSyncResult
