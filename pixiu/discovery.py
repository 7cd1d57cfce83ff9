"""In-memory API discovery service built on the routing table."""

from __future__ import annotations

import logging
import threading

from pixiu.model import API, APIConfig, HTTPVerb, Method, PATH_SLASH, Resource
from pixiu.router import Route, RouteError

logger = logging.getLogger(__name__)

LOCAL_MEMORY_API_DISCOVERY_SERVICE = "api.ds.local_memory"


class DiscoveryError(Exception):
    """Raised when an API cannot be found or loaded."""


class LocalMemoryAPIDiscoveryService:
    """Keeps configured APIs in a local routing table."""

    def __init__(self) -> None:
        self.router = Route()

    def add_api(self, api: API) -> None:
        """Add an API; raise RouteError when its method already exists."""
        self.router.put_api(api)

    def get_api(self, url: str, http_verb: HTTPVerb) -> API:
        """Return the API serving ``url`` with ``http_verb``."""
        api = self.router.find_api(url, http_verb)
        if api is None:
            raise DiscoveryError("not found")
        return api

    def clear_api(self) -> None:
        """Remove every API."""
        self.router.clear_api()

    def api_config_change(self, api_config: APIConfig) -> bool:
        """Reload all APIs from a changed configuration."""
        self.clear_api()
        try:
            load_api_from_resource("", api_config.resources, None, self)
        except DiscoveryError as exc:
            logger.warning("reloading api config: %s", exc)
        return True


_services: dict[str, LocalMemoryAPIDiscoveryService] = {}
_config_listeners: list[LocalMemoryAPIDiscoveryService] = []
_lock = threading.Lock()


def set_api_discovery_service(name: str, service: LocalMemoryAPIDiscoveryService) -> None:
    """Register a discovery service under ``name``."""
    with _lock:
        _services[name] = service


def get_api_discovery_service(name: str) -> LocalMemoryAPIDiscoveryService:
    """Return the discovery service registered under ``name``."""
    with _lock:
        try:
            return _services[name]
        except KeyError:
            raise DiscoveryError(f"api discovery service {name} not found") from None


def init() -> None:
    """Register a fresh local-memory discovery service."""
    set_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE, LocalMemoryAPIDiscoveryService())


def init_apis_from_config(api_config: APIConfig) -> None:
    """Load the configured APIs into the registered local-memory service."""
    service = get_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE)
    if not api_config.resources:
        return
    with _lock:
        if service not in _config_listeners:
            _config_listeners.append(service)
    load_api_from_resource("", api_config.resources, None, service)


def refresh_apis_from_config(api_config: APIConfig) -> None:
    """Load the configured APIs into a new service and register it if loading succeeds."""
    service = LocalMemoryAPIDiscoveryService()
    if not api_config.resources:
        return
    load_api_from_resource("", api_config.resources, None, service)
    set_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE, service)


def load_api_from_resource(
    parent_path: str,
    resources: list[Resource],
    parent_headers: dict[str, str] | None,
    service: LocalMemoryAPIDiscoveryService,
) -> None:
    """Add the methods of ``resources`` and their sub-resources to ``service``.

    Problems are collected and raised together as one DiscoveryError.
    """
    if not resources:
        return
    errors: list[str] = []
    group_path = "" if parent_path == PATH_SLASH else parent_path
    full_headers = parent_headers if parent_headers is not None else {}
    for resource in resources:
        full_path = group_path + resource.path
        if not resource.path.startswith(PATH_SLASH):
            errors.append(f"Path {resource.path} in {parent_path} doesn't start with /")
            continue
        full_headers.update(resource.headers)
        if resource.resources:
            try:
                load_api_from_resource(resource.path, resource.resources, full_headers, service)
            except DiscoveryError as exc:
                errors.append(str(exc))
        try:
            load_api_from_methods(full_path, resource.methods, full_headers, service)
        except DiscoveryError as exc:
            errors.append(str(exc))
    if errors:
        raise DiscoveryError("; ".join(errors))


def load_api_from_methods(
    full_path: str,
    methods: list[Method],
    headers: dict[str, str] | None,
    service: LocalMemoryAPIDiscoveryService,
) -> None:
    """Add one API per method under ``full_path``; raise DiscoveryError listing failures."""
    errors: list[str] = []
    for method in methods:
        api = API(url_pattern=full_path, method=method, headers=headers if headers is not None else {})
        try:
            service.add_api(api)
        except RouteError as exc:
            errors.append(f"Path: {full_path}, Method: {method.http_verb}, error: {exc}")
    if errors:
        raise DiscoveryError("\n".join(errors))