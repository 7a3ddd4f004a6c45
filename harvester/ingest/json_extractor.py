"""Extract catalog entities from embedded JSON in rendered pages."""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)

JSON_SCRIPT_SELECTOR = 'script[type="application/json"], script[type="application/ld+json"]'

URL_KEYS = ("htreviewsUrl", "url", "href")


def extract_json_scripts(tree: HTMLParser, selector: str = JSON_SCRIPT_SELECTOR) -> List[Any]:
    """
    Parse every JSON script block matching selector.

    Malformed blocks are skipped without affecting the others.
    """
    results = []
    for script in tree.css(selector):
        try:
            results.append(json.loads(script.text()))
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug(f"Skipping malformed JSON script block: {e}")
            continue
    return results


def extract_json_ld(tree: HTMLParser) -> List[Any]:
    """
    Extract JSON-LD structured data from script tags.

    Returns list of JSON-LD objects found in the page.
    """
    return extract_json_scripts(tree, 'script[type="application/ld+json"]')


def _iter_json_ld_nodes(obj: Any) -> Iterator[Dict[str, Any]]:
    """Yield top-level JSON-LD entities, unwrapping lists and @graph containers."""
    if isinstance(obj, list):
        for item in obj:
            yield from _iter_json_ld_nodes(item)
    elif isinstance(obj, dict):
        if isinstance(obj.get("@graph"), list):
            yield from _iter_json_ld_nodes(obj["@graph"])
        yield obj


def has_type(obj: Dict[str, Any], type_name: str) -> bool:
    obj_type = obj.get("@type", "")
    if isinstance(obj_type, list):
        return type_name in obj_type
    return obj_type == type_name


def find_typed_entity(
    json_ld_objects: List[Any],
    type_name: str,
    required_key: Optional[str] = "description",
) -> Optional[Dict[str, Any]]:
    """
    Find the first JSON-LD entity of the given schema.org type.

    Args:
        json_ld_objects: Parsed JSON-LD blocks
        type_name: schema.org type, e.g. "Product" or "Brand"
        required_key: Key that must hold a non-empty value for a match

    Returns:
        Matching entity dict or None
    """
    for block in json_ld_objects:
        for node in _iter_json_ld_nodes(block):
            if not has_type(node, type_name):
                continue
            if required_key and not node.get(required_key):
                continue
            return node
    return None


def image_from_json_ld(value: Any) -> Optional[str]:
    """Normalize a schema.org image value (string, ImageObject or list) to a URL."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("url") or value.get("contentUrl")
    if isinstance(value, list):
        for item in value:
            url = image_from_json_ld(item)
            if url:
                return url
    return None


def find_catalog_entities(data: Any) -> List[Dict[str, Any]]:
    """
    Recursively collect objects that look like catalog entries.

    An entry has a name plus a slug or a URL.
    """
    entities = []

    def search(obj: Any) -> None:
        if isinstance(obj, dict):
            url = next((obj[k] for k in URL_KEYS if isinstance(obj.get(k), str)), None)
            if isinstance(obj.get("name"), str) and (obj.get("slug") or url):
                entities.append(obj)
            for value in obj.values():
                if isinstance(value, (dict, list)):
                    search(value)
        elif isinstance(obj, list):
            for item in obj:
                if isinstance(item, (dict, list)):
                    search(item)

    search(data)
    return entities


def entity_url(entity: Dict[str, Any]) -> Optional[str]:
    """Return the first URL-like field of a catalog entity."""
    for key in URL_KEYS:
        value = entity.get(key)
        if isinstance(value, str) and value:
            return value
    return None
