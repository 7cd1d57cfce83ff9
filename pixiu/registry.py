"""Loading dubbo services from consul and zookeeper registries."""

from __future__ import annotations

import json
import logging
import posixpath
import re
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import parse_qs, quote, unquote_plus, urlsplit

from pixiu.model import DubboBackendConfig, IntegrationRequest, Loader, RequestType

logger = logging.getLogger(__name__)

DUBBO_API_FILTER = "dubbo in Tags"
ROOT_PATH = "/dubbo"

METHODS_KEY = "methods"
NAME_KEY = "name"
GROUP_KEY = "group"
VERSION_KEY = "version"
INTERFACE_KEY = "interface"
RETRIES_KEY = "retries"

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class RegistryError(Exception):
    """Raised when a registry cannot be read or a service URL is malformed."""


@dataclass
class ServiceURL:
    """A service address as registered by a dubbo provider."""

    protocol: str = ""
    ip: str = ""
    port: str = ""
    path: str = ""
    params: dict[str, list[str]] = field(default_factory=dict)
    methods: list[str] = field(default_factory=list)

    @property
    def location(self) -> str:
        """The ``ip:port`` pair of the service."""
        return f"{self.ip}:{self.port}"

    def get_param(self, key: str, default: str = "") -> str:
        """Return the first value of ``key``, or ``default`` when missing or empty."""
        values = self.params.get(key)
        value = values[0] if values else ""
        return value or default

    def get_method_param(self, method: str, key: str, default: str = "") -> str:
        """Return a per-method parameter such as ``methods.GetUser.retries``."""
        return self.get_param(f"{METHODS_KEY}.{method}.{key}", default)


def _split_methods(value: str) -> list[str]:
    return [method for method in value.split(",") if method]


def parse_service_url(raw: str) -> ServiceURL:
    """Parse a possibly query-escaped service URL string."""
    if not raw:
        return ServiceURL()
    if _BAD_ESCAPE.search(raw):
        raise RegistryError(f"invalid escape in service url {raw!r}")
    text = unquote_plus(raw)
    if "//" not in text:
        text = "//" + text
    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError as exc:
        raise RegistryError(f"invalid service url {raw!r}: {exc}") from exc
    params = parse_qs(parts.query, keep_blank_values=True)
    methods_values = params.get(METHODS_KEY)
    methods = _split_methods(methods_values[0]) if methods_values else []
    return ServiceURL(
        protocol=parts.scheme,
        ip=parts.hostname or "",
        port="" if port is None else str(port),
        path=parts.path,
        params=params,
        methods=methods,
    )


def consul_service_to_url(service: Mapping[str, Any]) -> ServiceURL:
    """Build a service URL from a consul agent service description."""
    params: dict[str, list[str]] = {}
    for tag in service.get("Tags") or []:
        pair = tag.split("=")
        if len(pair) != 2:
            continue
        params.setdefault(pair[0], []).append(pair[1])

    protocol = ""
    meta = service.get("Meta") or {}
    if "url" in meta:
        protocol = meta["url"].split(":")[0]

    methods_values = params.get(METHODS_KEY)
    methods = _split_methods(methods_values[0]) if methods_values else []
    return ServiceURL(
        protocol=protocol,
        ip=service.get("Address", "") or "",
        port=str(service.get("Port", 0)),
        params=params,
        methods=methods,
    )


def transfer_url_to_api(url: ServiceURL, cluster_name: str) -> list[IntegrationRequest]:
    """Turn every method of a service URL into an integration request."""
    try:
        request_type: RequestType | str = RequestType(url.protocol)
    except ValueError:
        request_type = url.protocol
    return [
        IntegrationRequest(
            request_type=request_type,
            dubbo_backend_config=DubboBackendConfig(
                application_name=url.get_param(NAME_KEY, ""),
                group=url.get_param(GROUP_KEY, ""),
                version=url.get_param(VERSION_KEY, ""),
                interface=url.get_param(INTERFACE_KEY, ""),
                method=method,
                retries=url.get_param(RETRIES_KEY, ""),
                cluster_name=cluster_name,
            ),
        )
        for method in url.methods
    ]


class ConsulClient(Protocol):
    """What the consul loader needs from a consul client."""

    def services_with_filter(self, expression: str) -> Mapping[str, Mapping[str, Any]]:
        """Return the agent services matching ``expression``, keyed by id."""


class ZookeeperClient(Protocol):
    """What the zookeeper loader needs from a zookeeper client."""

    def get_children(self, path: str) -> list[str]:
        """Return the names of the children of ``path``."""


class _ConsulHTTPClient:
    """Talks to the consul agent HTTP API."""

    def __init__(self, address: str, timeout: float = 10.0) -> None:
        self.address = address
        self.timeout = timeout

    def services_with_filter(self, expression: str) -> Mapping[str, Mapping[str, Any]]:
        base = self.address if "://" in self.address else f"http://{self.address}"
        url = f"{base.rstrip('/')}/v1/agent/services?filter={quote(expression)}"
        with urllib.request.urlopen(url, timeout=self.timeout) as response:
            return json.loads(response.read().decode("utf-8"))


class ConsulRegistryLoad(Loader):
    """Loads dubbo services from a consul registry."""

    def __init__(self, address: str, cluster: str, client: ConsulClient | None = None) -> None:
        self.address = address
        self._cluster = cluster
        self._client: ConsulClient = client or _ConsulHTTPClient(address)

    def get_cluster(self) -> str:
        return self._cluster

    def load_all_services(self) -> list[ServiceURL]:
        try:
            services = self._client.services_with_filter(DUBBO_API_FILTER)
        except (OSError, ValueError) as exc:
            logger.error("consul load all apis error: %s", exc)
            raise RegistryError(f"consul load all apis: {exc}") from exc
        urls = []
        for service in services.values():
            try:
                urls.append(consul_service_to_url(service))
            except (RegistryError, TypeError, AttributeError) as exc:
                logger.warning("consul transfer service to url error: %s", exc)
        return urls


class ZookeeperRegistryLoad(Loader):
    """Loads dubbo services from a zookeeper registry."""

    def __init__(self, address: str, cluster: str, client: ZookeeperClient) -> None:
        self.address = address
        self.addresses = address.split(",")
        self._cluster = cluster
        self._client = client

    def get_cluster(self) -> str:
        return self._cluster

    def _children(self, path: str) -> list[str]:
        try:
            return list(self._client.get_children(path))
        except Exception as exc:
            logger.error('[zookeeper registry] get zk children "%s" error: %s', path, exc)
            raise RegistryError(f'get zk children "{path}": {exc}') from exc

    def load_all_services(self) -> list[ServiceURL]:
        urls = []
        for interface in self._children(ROOT_PATH):
            providers = posixpath.normpath(f"{ROOT_PATH}/{interface}/providers")
            for raw in self._children(providers):
                try:
                    urls.append(parse_service_url(raw))
                except RegistryError as exc:
                    logger.warning("[zookeeper registry] transfer zk info to url error: %s", exc)
        return urls