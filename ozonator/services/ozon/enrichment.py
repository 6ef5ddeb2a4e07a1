"""
Enrichment Merger

Joins /v3/product/list entries with extended info, attributes and the
description-category tree into EnrichedProduct records.

The info call is required. Attributes and category naming are best effort:
when they fail the products still come out with their base fields.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ozonator.core.config import get_settings
from ozonator.core.enums import Visibility
from ozonator.core.exceptions import OzonAPIError
from ozonator.core.utils import ValidId, chunked, clean_text, parse_external_id, to_text, valid_ids
from ozonator.schemas.catalog import EnrichedProduct
from ozonator.services.ozon.client import OzonClient

logger = logging.getLogger(__name__)

# Attribute ids that have carried the brand over the years, most reliable first
BRAND_ATTRIBUTE_IDS = (85, 31)
BARCODE_ATTRIBUTE_IDS = (4155,)

MAX_HIDDEN_REASONS = 12
HIDDEN_REASON_SEPARATOR = "; "


def _int_or_none(value: Any) -> Optional[int]:
    parsed = parse_external_id(value)
    return parsed.value if isinstance(parsed, ValidId) else None


def reason_text(element: Any) -> Optional[str]:
    """Readable text of one reason element: str, number or object"""
    if element is None:
        return None
    if isinstance(element, dict):
        for field in ("message", "error", "description", "text"):
            text = clean_text(element.get(field))
            if text:
                return text
        return clean_text(to_text(element))
    if isinstance(element, list):
        return clean_text(to_text(element))
    return clean_text(element)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def collect_hidden_reasons(info: Dict[str, Any]) -> Optional[str]:
    """
    Decline reasons, item errors and generic errors, flattened into one
    de-duplicated string of at most MAX_HIDDEN_REASONS entries.
    """
    sources: List[Any] = []

    status = info.get("status") if isinstance(info.get("status"), dict) else {}
    statuses = info.get("statuses") if isinstance(info.get("statuses"), dict) else {}
    sources.extend(_as_list(status.get("decline_reasons")))
    sources.extend(_as_list(statuses.get("decline_reasons")))
    sources.extend(_as_list(info.get("decline_reasons")))

    sources.extend(_as_list(status.get("item_errors")))
    sources.extend(_as_list(info.get("item_errors")))

    sources.extend(_as_list(info.get("errors")))
    sources.extend(_as_list(info.get("hidden_reasons")))

    reasons: List[str] = []
    for element in sources:
        text = reason_text(element)
        if text and text not in reasons:
            reasons.append(text)
        if len(reasons) >= MAX_HIDDEN_REASONS:
            break

    return HIDDEN_REASON_SEPARATOR.join(reasons) if reasons else None


def _attribute_values(attribute: Dict[str, Any]) -> List[Dict[str, Any]]:
    values = attribute.get("values")
    if not isinstance(values, list):
        return []
    return [v if isinstance(v, dict) else {"value": v} for v in values]


def pick_attribute(attributes: Iterable[Dict[str, Any]], attribute_ids: Tuple[int, ...]) -> Optional[str]:
    """
    First non-empty text value among `attribute_ids`, scanned in priority
    order. If no attribute has text, the first dictionary_value_id seen is
    returned instead.
    """
    by_id: Dict[int, Dict[str, Any]] = {}
    for attribute in attributes or []:
        if not isinstance(attribute, dict):
            continue
        attr_id = _int_or_none(attribute.get("attribute_id", attribute.get("id")))
        if attr_id is not None and attr_id not in by_id:
            by_id[attr_id] = attribute

    fallback: Optional[str] = None
    for attr_id in attribute_ids:
        attribute = by_id.get(attr_id)
        if attribute is None:
            continue
        for value in _attribute_values(attribute):
            text = clean_text(value.get("value"))
            if text:
                return text
            if fallback is None:
                dictionary_id = _int_or_none(value.get("dictionary_value_id"))
                if dictionary_id is not None:
                    fallback = str(dictionary_id)
    return fallback


def walk_category_tree(nodes: List[Dict[str, Any]]) -> Tuple[Dict[int, str], Dict[int, str]]:
    """category_id -> name and type_id -> name maps of the description-category tree"""
    categories: Dict[int, str] = {}
    types: Dict[int, str] = {}
    stack = list(nodes or [])

    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue

        category_id = _int_or_none(node.get("description_category_id", node.get("category_id")))
        category_name = clean_text(node.get("category_name") or node.get("title") or node.get("name"))
        if category_id is not None and category_name:
            categories.setdefault(category_id, category_name)

        type_id = _int_or_none(node.get("type_id"))
        type_name = clean_text(node.get("type_name"))
        if type_id is not None and type_name:
            types.setdefault(type_id, type_name)

        for child in node.get("types") or []:
            stack.append(child)
        for child in node.get("children") or []:
            stack.append(child)

    return categories, types


def _photo_url(info: Dict[str, Any]) -> Optional[str]:
    primary = info.get("primary_image")
    if isinstance(primary, list):
        primary = primary[0] if primary else None
    text = clean_text(primary)
    if text:
        return text
    images = info.get("images")
    if isinstance(images, list) and images:
        return clean_text(images[0])
    return None


def _sku_variants(info: Dict[str, Any]) -> Optional[Dict[str, str]]:
    variants: Dict[str, str] = {}
    for field in ("fbo_sku", "fbs_sku"):
        text = clean_text(info.get(field))
        if text and text != "0":
            variants[field.split("_")[0]] = text
    for source in info.get("sources") or []:
        if not isinstance(source, dict):
            continue
        label = clean_text(source.get("source") or source.get("shipment_type"))
        sku = clean_text(source.get("sku"))
        if label and sku and sku != "0":
            variants.setdefault(label.lower(), sku)
    return variants or None


def _marketplace_sku(info: Dict[str, Any], entry: Dict[str, Any]) -> Optional[str]:
    for candidate in (info.get("ozon_sku"), info.get("sku"), entry.get("sku")):
        text = clean_text(candidate)
        if text and text != "0":
            return text
    for source in info.get("sources") or []:
        if isinstance(source, dict):
            text = clean_text(source.get("sku"))
            if text and text != "0":
                return text
    return None


def _barcode(info: Dict[str, Any], attributes: List[Dict[str, Any]]) -> Optional[str]:
    text = clean_text(info.get("barcode"))
    if text:
        return text
    barcodes = info.get("barcodes")
    if isinstance(barcodes, list):
        for value in barcodes:
            text = clean_text(value)
            if text:
                return text
    return pick_attribute(attributes, BARCODE_ATTRIBUTE_IDS)


def merge_product(
    entry: Dict[str, Any],
    info: Optional[Dict[str, Any]],
    attributes: Optional[List[Dict[str, Any]]],
    categories: Dict[int, str],
    types: Dict[int, str],
) -> Optional[EnrichedProduct]:
    """
    One list entry plus whatever was resolved for it. Returns None for entries
    without an offer id, which cannot be keyed.
    """
    info = info or {}
    attributes = attributes or []

    offer_id = clean_text(entry.get("offer_id")) or clean_text(info.get("offer_id"))
    if not offer_id:
        return None

    product_id = _int_or_none(entry.get("product_id", entry.get("id")))
    if product_id is None:
        product_id = _int_or_none(info.get("id", info.get("product_id")))

    category_id = _int_or_none(info.get("description_category_id", info.get("category_id")))
    type_id = _int_or_none(info.get("type_id"))

    category_name = clean_text(info.get("category_name")) or clean_text(info.get("description_category_name"))
    if not category_name and category_id is not None:
        category_name = categories.get(category_id)
    type_name = clean_text(info.get("type_name")) or clean_text(info.get("product_type"))
    if not type_name and type_id is not None:
        type_name = types.get(type_id)

    brand = clean_text(info.get("brand")) or pick_attribute(attributes, BRAND_ATTRIBUTE_IDS)

    visible_flag = None
    for candidate in (info.get("is_visible"), info.get("visible")):
        if isinstance(candidate, bool):
            visible_flag = candidate
            break
    archived = bool(entry.get("archived") or info.get("is_archived") or info.get("archived"))

    return EnrichedProduct(
        offer_id=offer_id,
        product_id=product_id,
        marketplace_sku=_marketplace_sku(info, entry),
        seller_sku=offer_id,
        sku_variants=_sku_variants(info),
        barcode=_barcode(info, attributes),
        brand=brand,
        category_id=category_id,
        category_name=category_name,
        type_id=type_id,
        type_name=type_name,
        name=clean_text(info.get("name")),
        photo_url=_photo_url(info),
        visibility=Visibility.from_flag(visible_flag),
        hidden_reasons=collect_hidden_reasons(info),
        remote_created_at=clean_text(info.get("created_at")),
        archived=archived,
    )


class ProductEnricher:
    """Resolves extended info, attributes and category names for one page of entries"""

    def __init__(self, client: OzonClient, chunk_size: Optional[int] = None):
        self.client = client
        self.chunk_size = chunk_size or get_settings().INFO_CHUNK_SIZE

    async def enrich(self, entries: List[Dict[str, Any]]) -> List[EnrichedProduct]:
        entries = [e for e in entries or [] if isinstance(e, dict)]
        if not entries:
            return []

        product_ids = valid_ids(e.get("product_id", e.get("id")) for e in entries)

        info_by_id: Dict[int, Dict[str, Any]] = {}
        for chunk in chunked(product_ids, self.chunk_size):
            # Failure here aborts the run; there is nothing useful to store without it
            for info in await self.client.get_product_info(chunk):
                if not isinstance(info, dict):
                    continue
                pid = _int_or_none(info.get("id", info.get("product_id")))
                if pid is not None:
                    info_by_id[pid] = info

        attributes_by_id = await self._fetch_attributes(product_ids)
        categories, types = await self._category_maps()

        products: List[EnrichedProduct] = []
        for entry in entries:
            pid = _int_or_none(entry.get("product_id", entry.get("id")))
            product = merge_product(
                entry,
                info_by_id.get(pid) if pid is not None else None,
                attributes_by_id.get(pid) if pid is not None else None,
                categories,
                types,
            )
            if product is None:
                logger.warning(f"Skipping list entry without offer_id: {entry}")
                continue
            products.append(product)

        return products

    async def _fetch_attributes(self, product_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
        out: Dict[int, List[Dict[str, Any]]] = {}
        try:
            for chunk in chunked(product_ids, self.chunk_size):
                for item in await self.client.get_product_attributes(chunk):
                    if not isinstance(item, dict):
                        continue
                    pid = _int_or_none(item.get("id", item.get("product_id")))
                    attributes = item.get("attributes")
                    if pid is not None and isinstance(attributes, list):
                        out[pid] = attributes
        except OzonAPIError as e:
            logger.warning(f"Attribute enrichment failed, continuing without brand/barcode attributes: {e.message}")
        return out

    async def _category_maps(self) -> Tuple[Dict[int, str], Dict[int, str]]:
        try:
            nodes = await self.client.get_category_tree()
        except OzonAPIError as e:
            logger.warning(f"Category tree unavailable, category and type names left empty: {e.message}")
            return {}, {}
        return walk_category_tree(nodes)
