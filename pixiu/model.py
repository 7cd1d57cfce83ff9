"""Core data types shared by the router, the registries and the discovery service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PATH_SLASH = "/"
PATH_PARAM_IDENTIFIER = ":"


class HTTPVerb(str, Enum):
    """HTTP methods an API can be bound to."""

    ANY = "ANY"
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"

    def __str__(self) -> str:
        return self.value


class RequestType(str, Enum):
    """Kinds of backend an API request is forwarded to."""

    DUBBO = "dubbo"
    HTTP = "http"

    def __str__(self) -> str:
        return self.value


@dataclass
class DubboBackendConfig:
    """Where and how a dubbo backend is reached."""

    cluster_name: str = ""
    application_name: str = ""
    protocol: str = ""
    group: str = ""
    version: str = ""
    interface: str = ""
    method: str = ""
    retries: str = ""
    timeout: str = ""


@dataclass
class IntegrationRequest:
    """The backend side of an API method."""

    request_type: RequestType | str = RequestType.HTTP
    host: str = ""
    path: str = ""
    dubbo_backend_config: DubboBackendConfig = field(default_factory=DubboBackendConfig)


@dataclass
class Method:
    """A single HTTP method of a resource and the backend it maps to."""

    http_verb: HTTPVerb
    on_air: bool = True
    timeout: str = ""
    filters: list[str] = field(default_factory=list)
    integration_request: IntegrationRequest = field(default_factory=IntegrationRequest)


@dataclass
class API:
    """A routable API: a URL pattern bound to one method."""

    url_pattern: str
    method: Method
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Resource:
    """A configured path holding methods and nested resources."""

    path: str
    type: str = "Restful"
    description: str = ""
    timeout: str = ""
    filters: list[str] = field(default_factory=list)
    methods: list[Method] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class APIConfig:
    """The whole API configuration of the gateway."""

    name: str = ""
    description: str = ""
    resources: list[Resource] = field(default_factory=list)
    plugin_file_path: str = ""
    plugins_group: list[Any] = field(default_factory=list)


@dataclass
class DiscoveryRequest:
    """A request sent to a discovery service."""

    body: bytes = b""


@dataclass
class DiscoveryResponse:
    """A reply from a discovery service."""

    success: bool = False
    data: Any = None


EMPTY_DISCOVERY_RESPONSE = DiscoveryResponse()


def new_discovery_response(data: Any) -> DiscoveryResponse:
    """Return a successful response carrying ``data``."""
    return DiscoveryResponse(success=True, data=data)


def new_discovery_response_with_success(success: bool) -> DiscoveryResponse:
    """Return a response without data and with the given success flag."""
    return DiscoveryResponse(success=success)


class Loader(ABC):
    """Loads the services registered in a registry such as consul or zookeeper."""

    @abstractmethod
    def load_all_services(self) -> list[Any]:
        """Return every service registered in the registry."""

    @abstractmethod
    def get_cluster(self) -> str:
        """Return the name of the cluster the registry serves."""