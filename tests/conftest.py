"""Shared fixtures: sample payloads and SVG helpers."""

import xml.etree.ElementTree as ET

import pytest

from hierviz.builder import build_model


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _svg_elements(svg: str, tag: str) -> list[ET.Element]:
    """All elements named `tag` in an SVG document, namespace ignored."""
    return [e for e in ET.fromstring(svg).iter() if _local(e.tag) == tag]


@pytest.fixture
def svg_elements():
    return _svg_elements


@pytest.fixture
def graph_payload():
    """{"name": "Ann", "tags": ["a", "b"]} in the nodes+links shape."""
    return {
        "nodes": [
            {"id": "1", "label": "Object", "value": "2 items", "depth": 0,
             "parent": None, "is_leaf": False},
            {"id": "2", "label": "String", "value": "Ann", "depth": 1,
             "parent": "1", "is_leaf": True, "name": "name"},
            {"id": "3", "label": "Array", "value": "2 items", "depth": 1,
             "parent": "1", "is_leaf": False, "name": "tags"},
            {"id": "4", "label": "String", "value": "a", "depth": 2,
             "parent": "3", "is_leaf": True, "name": "0"},
            {"id": "5", "label": "String", "value": "b", "depth": 2,
             "parent": "3", "is_leaf": True, "name": "1"},
        ],
        "links": [
            {"source": "1", "target": "2"},
            {"source": "1", "target": "3"},
            {"source": "3", "target": "4"},
            {"source": "3", "target": "5"},
        ],
    }


@pytest.fixture
def tree_payload():
    """root -> a (leaf "1"), b -> c (leaf "x")."""
    return {
        "name": "root",
        "children": [
            {"name": "a", "value": "1"},
            {"name": "b", "children": [{"name": "c", "value": '"x"'}]},
        ],
    }


@pytest.fixture
def dangling_payload():
    return {
        "nodes": [{"id": "1", "label": "Object", "value": "0 items", "depth": 0, "parent": None}],
        "links": [{"source": "1", "target": "99"}],
    }


@pytest.fixture
def graph_model(graph_payload):
    return build_model(graph_payload)


@pytest.fixture
def tree_model(tree_payload):
    return build_model(tree_payload)
