"""Routing table of configured APIs, with support for ``:param`` wildcards."""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from urllib.parse import unquote, urlsplit

from pixiu.model import API, PATH_PARAM_IDENTIFIER, PATH_SLASH, HTTPVerb, Method


class RouteError(Exception):
    """Raised when an API cannot be added to the routing table."""


@dataclass
class Node:
    """All methods configured for one URL pattern."""

    full_path: str
    wildcard: bool = False
    methods: dict[HTTPVerb, Method] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    filters: list[str] = field(default_factory=list)

    def _add_method(self, method: Method, headers: dict[str, str]) -> None:
        if method.http_verb in self.methods:
            raise RouteError(
                f"Method {method.http_verb} already exists in path {self.full_path}"
            )
        self.methods[method.http_verb] = copy.deepcopy(method)
        self.headers = headers


class Route:
    """A thread-safe table of API nodes keyed by lower-cased URL pattern."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tree: dict[str, Node] = {}
        self._wildcard_tree: dict[str, Node] = {}

    def __getitem__(self, path: str) -> Node:
        with self._lock:
            return self._tree[path.lower()]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        with self._lock:
            return path.lower() in self._tree

    def __len__(self) -> int:
        with self._lock:
            return len(self._tree)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._tree))

    def clear_api(self) -> None:
        """Remove every API."""
        with self._lock:
            self._wildcard_tree.clear()
            self._tree.clear()

    def put_api(self, api: API) -> None:
        """Add an API; raise RouteError if its method already exists on the matching node."""
        path = api.url_pattern.lower()
        with self._lock:
            node = self._find_node(path)
            if node is not None:
                node._add_method(api.method, api.headers)
                return
            wildcard = PATH_PARAM_IDENTIFIER in path
            node = Node(
                full_path=path,
                wildcard=wildcard,
                methods={api.method.http_verb: copy.deepcopy(api.method)},
                headers=api.headers,
            )
            if wildcard:
                self._wildcard_tree[path] = node
            self._tree[path] = node

    def update_api(self, api: API) -> None:
        """Replace an existing method of the node matching the API's pattern."""
        with self._lock:
            node = self._find_node(api.url_pattern)
            if node is not None and api.method.http_verb in node.methods:
                node.methods[api.method.http_verb] = copy.deepcopy(api.method)

    def find_api(self, full_path: str, http_verb: HTTPVerb) -> API | None:
        """Return the API serving ``full_path`` with ``http_verb``, or None."""
        with self._lock:
            node = self._find_node(full_path)
            if node is None:
                return None
            method = node.methods.get(http_verb)
            if method is None:
                return None
            return API(
                url_pattern=node.full_path,
                method=copy.deepcopy(method),
                headers=node.headers,
            )

    def search_wildcard(self, full_path: str) -> Node | None:
        """Return the first wildcard node, in pattern order, matching ``full_path``."""
        with self._lock:
            for pattern in sorted(self._wildcard_tree):
                if wildcard_match(pattern, full_path) is not None:
                    return self._wildcard_tree[pattern]
        return None

    def _find_node(self, full_path: str) -> Node | None:
        lower_path = full_path.lower()
        with self._lock:
            node = self.search_wildcard(lower_path)
            if node is None:
                node = self._tree.get(lower_path)
            return node


def wildcard_match(wildcard_path: str, check_path: str) -> dict[str, list[str]] | None:
    """Match ``check_path`` against a pattern such as ``/vought/:id``.

    Returns the captured parameters (possibly empty) or None when the paths
    do not match. Literal segments are compared case-insensitively.
    """
    check_parts = check_path.lstrip(PATH_SLASH).split(PATH_SLASH)
    wild_parts = wildcard_path.lstrip(PATH_SLASH).split(PATH_SLASH)
    if len(check_parts) != len(wild_parts):
        return None
    result: dict[str, list[str]] = {}
    for check, wild in zip(check_parts, wild_parts):
        if wild.startswith(PATH_PARAM_IDENTIFIER):
            name = wild[len(PATH_PARAM_IDENTIFIER):]
            result.setdefault(name, []).append(check)
        elif check.casefold() != wild.casefold():
            return None
    return result


def get_uri_params(api: API, raw_url: str) -> dict[str, list[str]] | None:
    """Return the path parameters of ``raw_url`` captured by the API's pattern."""
    path = unquote(urlsplit(raw_url).path)
    return wildcard_match(api.url_pattern, path)


def is_wildcard_backend_path(api: API) -> bool:
    """Tell whether the API's backend path contains parameters."""
    path = api.method.integration_request.path
    if not path:
        return False
    return PATH_PARAM_IDENTIFIER in path