"""
Default converter: source text -> payload.

Implements the converter call interface the controller and the outer
surfaces use:

    convert(text, fmt, shape) -> dict

Supported formats are JSON, YAML, XML and CSV. Every format is first decoded
into plain Python values (dict/list/scalars) and then flattened into one of
the two payload shapes:
- graph: {"nodes": [...], "links": [...]}, ids "1", "2", ... in pre-order
- tree:  {"name": "root", "children": [...]} with JSON-encoded leaf values

Decode failures raise ConversionError with a message fit for the user.
"""

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import yaml

from .errors import ConversionError
from .models import NodeLabel, PayloadShape

logger = logging.getLogger(__name__)

Converter = Callable[[str, "Format", PayloadShape], dict]


class Format(str, Enum):
    JSON = "json"
    YAML = "yaml"
    XML = "xml"
    CSV = "csv"


SUFFIXES = {
    ".json": Format.JSON,
    ".yaml": Format.YAML,
    ".yml": Format.YAML,
    ".xml": Format.XML,
    ".csv": Format.CSV,
}


def format_for_path(path: str | Path) -> Format:
    """Guess the format from a file suffix (JSON when unknown)."""
    return SUFFIXES.get(Path(path).suffix.lower(), Format.JSON)


# --- Decoding ---

def _decode_json(text: str) -> tuple[Any, str | None]:
    try:
        return json.loads(text), None
    except json.JSONDecodeError as e:
        raise ConversionError(f"Failed to parse JSON: {e}") from e


def _decode_yaml(text: str) -> tuple[Any, str | None]:
    try:
        return yaml.safe_load(text), None
    except yaml.YAMLError as e:
        raise ConversionError(f"Failed to parse YAML: {e}") from e


def _xml_value(element: ET.Element) -> Any:
    """
    Element -> Python value.

    Text-only elements become their (stripped) text. Otherwise a dict of
    attributes ("@name"), child elements by tag (repeated tags become a
    list) and any mixed text under "#text".
    """
    children = list(element)
    text = (element.text or "").strip()
    if not children and not element.attrib:
        return text

    result: dict[str, Any] = {f"@{k}": v for k, v in element.attrib.items()}
    for child in children:
        value = _xml_value(child)
        if child.tag not in result:
            result[child.tag] = value
        elif isinstance(result[child.tag], list):
            result[child.tag].append(value)
        else:
            result[child.tag] = [result[child.tag], value]
    if text:
        result["#text"] = text
    return result


def _decode_xml(text: str) -> tuple[Any, str | None]:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise ConversionError(f"Error parsing XML: {e}") from e
    return _xml_value(root), root.tag


def _decode_csv(text: str) -> tuple[Any, str | None]:
    """First data record as an object; each field is tried as JSON first."""
    try:
        reader = csv.DictReader(io.StringIO(text))
        record = next(reader, None)
    except csv.Error as e:
        raise ConversionError(f"CSV record error: {e}") from e
    if record is None:
        raise ConversionError("No CSV record found")

    result = {}
    for header, field in record.items():
        if header is None:
            continue
        field = field or ""
        try:
            result[header] = json.loads(field)
        except json.JSONDecodeError:
            result[header] = field
    return result, None


DECODERS: dict[Format, Callable[[str], tuple[Any, str | None]]] = {
    Format.JSON: _decode_json,
    Format.YAML: _decode_yaml,
    Format.XML: _decode_xml,
    Format.CSV: _decode_csv,
}


def decode(text: str, fmt: Format | str) -> tuple[Any, str | None]:
    """
    Decode source text into plain values.

    Returns:
        (value, root_name) where root_name is the document element's tag
        for XML and None otherwise
    """
    if not text or not text.strip():
        raise ConversionError("Input is empty")
    try:
        fmt = Format(fmt)
    except ValueError as e:
        raise ConversionError(f"Unsupported format: {fmt}") from e
    return DECODERS[fmt](text)


# --- Flattening ---

def scalar_label(value: Any) -> str:
    if value is None:
        return NodeLabel.NULL.value
    if isinstance(value, bool):
        return NodeLabel.BOOLEAN.value
    if isinstance(value, (int, float)):
        return NodeLabel.NUMBER.value
    if isinstance(value, str):
        return NodeLabel.STRING.value
    return NodeLabel.VALUE.value


def scalar_text(value: Any) -> str:
    """Display text for a scalar (strings unquoted, JSON spelling otherwise)."""
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return str(value)


def _items(value: Any) -> list[tuple[str, Any]]:
    if isinstance(value, dict):
        return [(str(k), v) for k, v in value.items()]
    return [(str(i), v) for i, v in enumerate(value)]


def to_graph(value: Any, root_name: str | None = None) -> dict:
    """Flatten a decoded value into the nodes+links shape."""
    nodes: list[dict] = []
    links: list[dict] = []
    counter = 0

    stack: list[tuple[Any, str | None, int, str | None]] = [(value, root_name, 0, None)]
    while stack:
        current, key, depth, parent = stack.pop()
        counter += 1
        node_id = str(counter)

        if isinstance(current, (dict, list)):
            items = _items(current)
            label = NodeLabel.OBJECT.value if isinstance(current, dict) else NodeLabel.ARRAY.value
            node = {"id": node_id, "label": label, "value": f"{len(items)} items",
                    "depth": depth, "parent": parent, "is_leaf": not items}
            for child_key, child in reversed(items):
                stack.append((child, child_key, depth + 1, node_id))
        else:
            node = {"id": node_id, "label": scalar_label(current), "value": scalar_text(current),
                    "depth": depth, "parent": parent, "is_leaf": True}
        if key is not None:
            node["name"] = key

        nodes.append(node)
        if parent is not None:
            links.append({"source": parent, "target": node_id})

    return {"nodes": nodes, "links": links}


def to_tree(value: Any, root_name: str | None = None) -> dict:
    """Nest a decoded value into the name/children shape."""
    def build(current: Any, name: str) -> dict:
        if isinstance(current, (dict, list)):
            return {"name": name, "children": [build(v, k) for k, v in _items(current)]}
        return {"name": name, "value": json.dumps(current, ensure_ascii=False, default=str)}

    return build(value, root_name or "root")


def convert(text: str, fmt: Format | str = Format.JSON,
            shape: PayloadShape | str = PayloadShape.GRAPH) -> dict:
    """
    Convert source text into a payload of the requested shape.

    Args:
        text: Source document
        fmt: Source format
        shape: "graph" (nodes+links) or "tree" (name/children)

    Returns:
        Payload dict ready for GraphModelBuilder

    Raises:
        ConversionError: The text cannot be decoded
    """
    value, root_name = decode(text, fmt)
    shape = PayloadShape(shape)
    logger.debug("Converted %s input to %s payload", Format(fmt).value, shape.value)
    if shape == PayloadShape.TREE:
        return to_tree(value, root_name)
    return to_graph(value, root_name)
