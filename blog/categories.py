from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from blog.schemas import BuildIssue, CategorySource, PostRecord
from blog.slugs import path_identifier

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_CATEGORY = "プロフィール"


@dataclass(frozen=True)
class CategoryNode:
    source_id: str
    display_name: str
    parent_source_id: str | None
    path_identifier: str | None
    child_source_ids: tuple[str, ...]


@dataclass(frozen=True)
class CategoryTree:
    nodes: dict[str, CategoryNode]
    root_ids: tuple[str, ...]
    descendant_names: dict[str, frozenset[str]]
    issues: list[BuildIssue] = field(default_factory=list)
    profile_name: str = DEFAULT_PROFILE_CATEGORY

    @property
    def roots(self) -> list[CategoryNode]:
        return [self.nodes[source_id] for source_id in self.root_ids]

    def navigation_roots(self, *, hidden_names: Iterable[str] = ()) -> list[CategoryNode]:
        hidden = {self.profile_name, *hidden_names}
        return [node for node in self.roots if node.display_name not in hidden]

    def children(self, source_id: str) -> list[CategoryNode]:
        return [self.nodes[child] for child in self.nodes[source_id].child_source_ids]

    def by_path_identifier(self, value: str) -> CategoryNode | None:
        for node in self.nodes.values():
            if node.path_identifier == value:
                return node
        return None

    def walk(self, roots: Sequence[CategoryNode] | None = None) -> list[CategoryNode]:
        """Depth-first pre-order over the nodes reachable from ``roots``."""
        ordered: list[CategoryNode] = []
        seen: set[str] = set()
        stack = list(reversed(self.roots if roots is None else list(roots)))
        while stack:
            node = stack.pop()
            if node.source_id in seen:
                continue
            seen.add(node.source_id)
            ordered.append(node)
            stack.extend(reversed(self.children(node.source_id)))
        return ordered

    def is_member(self, post: PostRecord, source_id: str) -> bool:
        names = self.descendant_names.get(source_id, frozenset())
        return any(name in names for name in post.categories)

    def posts_in(self, source_id: str, posts: Sequence[PostRecord]) -> list[PostRecord]:
        return [post for post in posts if self.is_member(post, source_id)]


def _collect_descendant_names(
    source_id: str,
    nodes: dict[str, CategorySource],
    children: dict[str, list[str]],
) -> frozenset[str]:
    names: set[str] = set()
    visited: set[str] = set()
    stack = [source_id]
    while stack:
        current = stack.pop()
        # A node reached twice (only possible with a cycle) is already expanded.
        if current in visited:
            continue
        visited.add(current)
        names.add(nodes[current].display_name)
        stack.extend(children.get(current, []))
    return frozenset(names)


def build_category_tree(
    sources: Iterable[CategorySource],
    *,
    profile_name: str = DEFAULT_PROFILE_CATEGORY,
) -> CategoryTree:
    nodes: dict[str, CategorySource] = {}
    issues: list[BuildIssue] = []
    for source in sources:
        if source.source_id in nodes:
            issues.append(
                BuildIssue(
                    code="duplicate_category",
                    path=source.source_id,
                    message=f"category id declared more than once; keeping '{nodes[source.source_id].display_name}'",
                )
            )
            continue
        nodes[source.source_id] = source

    children: dict[str, list[str]] = {source_id: [] for source_id in nodes}
    root_ids: list[str] = []
    for source in nodes.values():
        parent = source.parent_source_id
        if parent is None:
            root_ids.append(source.source_id)
            continue
        if parent not in nodes or parent == source.source_id:
            issues.append(
                BuildIssue(
                    code="dangling_parent",
                    path=source.source_id,
                    message=f"parent '{parent}' is not a known category; treating as a root",
                )
            )
            logger.warning("category %s has unknown parent %s; treating as a root", source.source_id, parent)
            root_ids.append(source.source_id)
            continue
        children[parent].append(source.source_id)

    root_ids.sort(key=lambda source_id: nodes[source_id].display_name)

    path_ids: dict[str, str] = {}
    used: set[str] = set()
    visited: set[str] = set()

    def assign(source_id: str, path_names: list[str]) -> None:
        if source_id in visited:
            return
        visited.add(source_id)
        names = [*path_names, nodes[source_id].display_name]
        candidate = path_identifier(names)
        unique = candidate
        suffix = 2
        while unique in used:
            unique = f"{candidate}-{suffix}"
            suffix += 1
        used.add(unique)
        path_ids[source_id] = unique
        for child in children[source_id]:
            assign(child, names)

    for root_id in root_ids:
        assign(root_id, [])

    tree_nodes = {
        source_id: CategoryNode(
            source_id=source_id,
            display_name=source.display_name,
            parent_source_id=source.parent_source_id if source_id not in root_ids else None,
            path_identifier=path_ids.get(source_id),
            child_source_ids=tuple(children[source_id]),
        )
        for source_id, source in nodes.items()
    }
    descendant_names = {
        source_id: _collect_descendant_names(source_id, nodes, children) for source_id in nodes
    }
    return CategoryTree(
        nodes=tree_nodes,
        root_ids=tuple(root_ids),
        descendant_names=descendant_names,
        issues=issues,
        profile_name=profile_name,
    )


def load_category_sources(path: Path) -> tuple[list[CategorySource], list[BuildIssue]]:
    if not path.exists():
        return [], []

    issues: list[BuildIssue] = []
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        return [], [BuildIssue(code="invalid_categories", path=path.as_posix(), message=str(exc))]
    if not isinstance(payload, list):
        return [], [BuildIssue(code="invalid_categories", path=path.as_posix(), message="expected a JSON list")]

    sources: list[CategorySource] = []
    for index, item in enumerate(payload):
        try:
            sources.append(CategorySource.model_validate(item))
        except ValidationError as exc:
            issues.append(
                BuildIssue(
                    code="schema_error",
                    path=path.as_posix(),
                    line=index + 1,
                    message=exc.errors()[0]["msg"],
                )
            )
    return sources, issues


def write_category_sources(path: Path, sources: Sequence[CategorySource]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    rows: list[dict[str, Any]] = [source.model_dump(mode="json") for source in sources]
    path.write_text(json.dumps(rows, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def navigation_tree(
    tree: CategoryTree,
    *,
    hidden_names: Iterable[str] = (),
    base_url: str = "",
) -> list[dict[str, Any]]:
    """Nested navigation entries below the navigation roots.

    A profile category nested under another root links to the profile page
    instead of a category listing.
    """

    def render(node: CategoryNode, seen: set[str]) -> dict[str, Any]:
        seen.add(node.source_id)
        if node.display_name == tree.profile_name:
            href = f"{base_url}profile.html"
        else:
            href = f"{base_url}category/{node.path_identifier}.html"
        return {
            "name": node.display_name,
            "href": href,
            "children": [
                render(child, seen) for child in tree.children(node.source_id) if child.source_id not in seen
            ],
        }

    seen: set[str] = set()
    return [render(node, seen) for node in tree.navigation_roots(hidden_names=hidden_names)]
