"""Explicit sidebar definitions.

A sidebars file maps sidebar names to item lists::

    docs:
      - index
      - type: category
        label: SOLID
        collapsed: true
        items:
          - fundamentals/solid/introduction
          - fundamentals/solid/single-responsibility
      - type: autogenerated
        dir: java
      - type: link
        label: GitHub
        href: https://github.com/example/guide

Items may be a bare doc id string or a mapping with a ``type`` of ``doc``,
``category``, ``link`` or ``autogenerated``.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class SidebarError(ValueError):
    """Raised when a sidebar definition is malformed or references unknown docs."""


@dataclass(frozen=True)
class DocItem:
    id: str
    label: str | None = None


@dataclass(frozen=True)
class LinkItem:
    label: str
    href: str


@dataclass(frozen=True)
class AutogeneratedItem:
    dir: str


@dataclass(frozen=True)
class CategoryItem:
    label: str
    items: list["SidebarItem"] = field(default_factory=list)
    collapsed: bool = True
    link: str | None = None


SidebarItem = DocItem | LinkItem | AutogeneratedItem | CategoryItem

Sidebars = dict[str, list[SidebarItem]]


def load_sidebars(path: Path) -> Sidebars:
    """Load sidebars from a YAML or JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        SidebarError: If the file is malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Sidebars file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SidebarError(f"Invalid sidebars file {path}: {e}") from e

    return parse_sidebars(data)


def parse_sidebars(data: object) -> Sidebars:
    """Validate raw sidebar data.

    Raises:
        SidebarError: If the structure is invalid
    """
    if not isinstance(data, dict) or not data:
        raise SidebarError("sidebars must be a non-empty mapping of sidebar names to item lists")

    sidebars: Sidebars = {}
    for name, items in data.items():
        if not isinstance(items, list):
            raise SidebarError(f"sidebar {name!r} must be a list of items")
        sidebars[str(name)] = [_parse_item(item, f"{name}[{i}]") for i, item in enumerate(items)]
    return sidebars


def _parse_item(item: object, where: str) -> SidebarItem:
    if isinstance(item, str):
        return DocItem(id=item)

    if not isinstance(item, dict):
        raise SidebarError(f"{where}: item must be a doc id or a mapping")

    item_type = item.get("type", "doc")

    if item_type == "doc":
        doc_id = item.get("id")
        if not isinstance(doc_id, str):
            raise SidebarError(f"{where}: doc item requires a string 'id'")
        return DocItem(id=doc_id, label=_optional_str(item, "label", where))

    if item_type == "link":
        label = item.get("label")
        href = item.get("href")
        if not isinstance(label, str) or not isinstance(href, str):
            raise SidebarError(f"{where}: link item requires 'label' and 'href'")
        return LinkItem(label=label, href=href)

    if item_type == "autogenerated":
        directory = item.get("dir")
        if not isinstance(directory, str):
            raise SidebarError(f"{where}: autogenerated item requires a string 'dir'")
        return AutogeneratedItem(dir=directory.strip("/"))

    if item_type == "category":
        label = item.get("label")
        if not isinstance(label, str):
            raise SidebarError(f"{where}: category item requires a string 'label'")
        children = item.get("items", [])
        if not isinstance(children, list):
            raise SidebarError(f"{where}: category 'items' must be a list")
        collapsed = item.get("collapsed", True)
        if not isinstance(collapsed, bool):
            raise SidebarError(f"{where}: category 'collapsed' must be a boolean")
        link = item.get("link")
        if isinstance(link, dict):
            link = link.get("id")
        if link is not None and not isinstance(link, str):
            raise SidebarError(f"{where}: category 'link' must be a doc id")
        return CategoryItem(
            label=label,
            items=[_parse_item(child, f"{where}.items[{i}]") for i, child in enumerate(children)],
            collapsed=collapsed,
            link=link,
        )

    raise SidebarError(f"{where}: unknown item type {item_type!r}")


def _optional_str(item: dict, key: str, where: str) -> str | None:
    value = item.get(key)
    if value is not None and not isinstance(value, str):
        raise SidebarError(f"{where}: '{key}' must be a string")
    return value


def iter_doc_ids(items: list[SidebarItem]) -> list[str]:
    """Collect every doc id referenced by a sidebar, depth-first."""
    doc_ids: list[str] = []
    for item in items:
        if isinstance(item, DocItem):
            doc_ids.append(item.id)
        elif isinstance(item, CategoryItem):
            if item.link:
                doc_ids.append(item.link)
            doc_ids.extend(iter_doc_ids(item.items))
    return doc_ids
