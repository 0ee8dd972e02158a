"""
XML Node Model
==============

Typed view over the loosely-shaped mappings that XML feed parsers produce.

Parsers such as fast-xml-parser or ``xmltodict.parse(xml, attr_prefix="@_")``
hand back plain dicts where:
- attributes live under ``@_``-prefixed keys
- text lives under ``#text`` (or ``_text``/``text``/``value``)
- a repeated element becomes a list, a single one does not

This module folds that into three explicit variants so the normalizer can
match on shape instead of guessing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

ATTRIBUTE_PREFIX = "@_"
TEXT_NODE_KEYS = ("#text", "_text", "text", "value")


@dataclass(frozen=True)
class XmlText:
    """A scalar value (string, number or boolean rendered as text)."""

    value: str


@dataclass(frozen=True)
class XmlElement:
    """An element with attributes and named children."""

    attributes: Dict[str, str] = field(default_factory=dict)
    children: Dict[str, "XmlNode"] = field(default_factory=dict)

    def child(self, name: str) -> Optional["XmlNode"]:
        return self.children.get(name)

    def has_child(self, name: str) -> bool:
        return name in self.children

    def get_attr(self, name: str) -> Optional["XmlNode"]:
        """Look up ``@_name`` first, then a plain ``name`` child.

        Some parsers are configured without an attribute prefix, in which
        case attributes and child elements share one namespace.
        """
        if name in self.attributes:
            return XmlText(self.attributes[name])
        return self.children.get(name)


@dataclass(frozen=True)
class XmlList:
    """A repeated element."""

    items: Tuple["XmlNode", ...] = ()


XmlNode = Union[XmlText, XmlElement, XmlList]


def _scalar_to_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def to_node(raw: Any) -> Optional[XmlNode]:
    """Convert a raw parser value into an :data:`XmlNode`.

    Returns None for ``None`` and for values of unsupported types.
    """
    if raw is None:
        return None

    text = _scalar_to_text(raw)
    if text is not None:
        return XmlText(text)

    if isinstance(raw, (list, tuple)):
        items = tuple(node for node in (to_node(entry) for entry in raw) if node is not None)
        return XmlList(items)

    if isinstance(raw, Mapping):
        attributes: Dict[str, str] = {}
        children: Dict[str, XmlNode] = {}
        for key, value in raw.items():
            if not isinstance(key, str):
                continue
            if key.startswith(ATTRIBUTE_PREFIX):
                attr_text = _scalar_to_text(value)
                if attr_text is not None:
                    attributes[key[len(ATTRIBUTE_PREFIX):]] = attr_text
                continue
            node = to_node(value)
            if node is not None:
                children[key] = node
        return XmlElement(attributes=attributes, children=children)

    return None


def iter_nodes(node: Optional[XmlNode]) -> Iterator[XmlNode]:
    """Yield a node, or each item of a list, treating single and repeated alike."""
    if node is None:
        return
    if isinstance(node, XmlList):
        for item in node.items:
            yield item
    else:
        yield node


def ensure_list(node: Optional[XmlNode]) -> List[XmlNode]:
    return list(iter_nodes(node))


def extract_first_text(node: Optional[XmlNode]) -> Optional[str]:
    """Return the first non-empty string reachable through lists and text keys.

    A direct scalar is returned as-is, even when empty; lists and elements
    only yield non-empty strings.
    """
    if node is None:
        return None

    if isinstance(node, XmlText):
        return node.value

    if isinstance(node, XmlList):
        for item in node.items:
            text = extract_first_text(item)
            if text:
                return text
        return None

    for key in TEXT_NODE_KEYS:
        if key in node.children:
            text = extract_first_text(node.children[key])
            if text:
                return text
    return None
