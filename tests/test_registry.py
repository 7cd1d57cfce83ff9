import io
import json
from unittest import mock
from urllib.parse import quote_plus

import pytest

from pixiu.model import RequestType
from pixiu.registry import (
    DUBBO_API_FILTER,
    ConsulRegistryLoad,
    RegistryError,
    ServiceURL,
    ZookeeperRegistryLoad,
    consul_service_to_url,
    parse_service_url,
    transfer_url_to_api,
)

REGISTRY_URL = (
    "tcp://localhost:8000/HelloWorld?anyhost=true&"
    "application=BDTService&category=providers&default.timeout=10000&dubbo=dubbo-provider-1.0.0&"
    "environment=dev&interface=com.ikurento.user.UserProvider&ip=192.168.56.1&methods=GetUser%2C&"
    "module=user-info+server&org=example.com&owner=ZX&pid=1447&revision=0.0.1&"
    "side=provider&timeout=3000&timestamp=1556509797245"
)
PROVIDER_URL = "dubbo://127.0.0.1:20000/com.ikurento.user.UserProvider?methods.GetUser.retries=1"


class FakeConsul:
    def __init__(self, services=None, error=None):
        self.services = services or {}
        self.error = error
        self.filters = []

    def services_with_filter(self, expression):
        self.filters.append(expression)
        if self.error:
            raise self.error
        return self.services


class FakeZookeeper:
    def __init__(self, tree):
        self.tree = tree

    def get_children(self, path):
        if path not in self.tree:
            raise KeyError(path)
        return self.tree[path]


def consul_service_for(url: ServiceURL):
    tags = [f"{key}={value}" for key, values in url.params.items() for value in values]
    return {
        "ID": "hello",
        "Service": "HelloWorld",
        "Tags": tags + ["dubbo"],
        "Meta": {"url": f"{url.protocol}://{url.location}{url.path}"},
        "Port": int(url.port),
        "Address": url.ip,
    }


def test_consul_get_cluster():
    loader = ConsulRegistryLoad("localhost:8500", "test_cluster", client=FakeConsul())
    assert loader.get_cluster() == "test_cluster"


def test_consul_load_all_services():
    registry_url = parse_service_url(REGISTRY_URL)
    fake = FakeConsul({"hello": consul_service_for(registry_url)})
    loader = ConsulRegistryLoad("localhost:8500", "test_cluster", client=fake)
    services = loader.load_all_services()
    assert len(services) == 1
    assert "GetUser" in services[0].methods
    assert services[0].params == registry_url.params
    assert services[0].protocol == "tcp"
    assert services[0].location == "localhost:8000"
    assert fake.filters == [DUBBO_API_FILTER]


def test_consul_load_error_raises():
    loader = ConsulRegistryLoad("localhost:8500", "c", client=FakeConsul(error=OSError("down")))
    with pytest.raises(RegistryError, match="consul load all apis"):
        loader.load_all_services()


def test_consul_http_client_queries_agent():
    payload = {"svc": {"Tags": ["methods=A,B"], "Meta": {"url": "dubbo://x"}, "Port": 1, "Address": "h"}}
    response = mock.MagicMock()
    response.__enter__.return_value = io.BytesIO(json.dumps(payload).encode())
    with mock.patch("urllib.request.urlopen", return_value=response) as urlopen:
        services = ConsulRegistryLoad("localhost:8500", "c").load_all_services()
    called_url = urlopen.call_args[0][0]
    assert called_url == "http://localhost:8500/v1/agent/services?filter=dubbo%20in%20Tags"
    assert services[0].methods == ["A", "B"]
    assert services[0].protocol == "dubbo"


def test_consul_service_to_url_skips_bad_tags():
    url = consul_service_to_url(
        {"Tags": ["a=1", "broken", "x=y=z", "methods=M1,,M2"], "Meta": {}, "Port": 9, "Address": "10.0.0.1"}
    )
    assert url.params == {"a": ["1"], "methods": ["M1,,M2"]}
    assert url.methods == ["M1", "M2"]
    assert url.protocol == ""
    assert url.location == "10.0.0.1:9"


def test_zookeeper_get_cluster():
    loader = ZookeeperRegistryLoad("127.0.0.1:1111", "test-cluster", FakeZookeeper({}))
    assert loader.get_cluster() == "test-cluster"
    assert loader.addresses == ["127.0.0.1:1111"]


def test_zookeeper_load_all_services():
    tree = {
        "/dubbo": ["com.ikurento.user.UserProvider"],
        "/dubbo/com.ikurento.user.UserProvider/providers": [quote_plus(PROVIDER_URL, safe="")],
    }
    loader = ZookeeperRegistryLoad("127.0.0.1:2181", "test-cluster", FakeZookeeper(tree))
    services = loader.load_all_services()
    assert len(services) >= 1
    assert services[0].protocol == "dubbo"
    assert services[0].location == "127.0.0.1:20000"
    assert services[0].path == "/com.ikurento.user.UserProvider"
    assert services[0].get_method_param("GetUser", "retries", "") == "1"


def test_zookeeper_skips_bad_urls_and_raises_on_missing_node():
    tree = {"/dubbo": ["svc"], "/dubbo/svc/providers": ["bad%zz", quote_plus(PROVIDER_URL, safe="")]}
    services = ZookeeperRegistryLoad("a", "c", FakeZookeeper(tree)).load_all_services()
    assert [s.location for s in services] == ["127.0.0.1:20000"]

    broken = ZookeeperRegistryLoad("a", "c", FakeZookeeper({"/dubbo": ["svc"]}))
    with pytest.raises(RegistryError):
        broken.load_all_services()


def test_parse_service_url_invalid_port():
    with pytest.raises(RegistryError):
        parse_service_url("dubbo://host:notaport/x")


def test_get_param_default_when_empty():
    url = parse_service_url("dubbo://h:1/p?group=&version=1.0")
    assert url.get_param("group", "dflt") == "dflt"
    assert url.get_param("version", "") == "1.0"
    assert url.get_param("missing", "x") == "x"


def test_transfer_url_to_api():
    url = parse_service_url(
        "dubbo://h:1/p?methods=A,B&name=app&group=g&version=1.0.0&interface=com.I&retries=3"
    )
    irs = transfer_url_to_api(url, "cluster")
    assert [ir.dubbo_backend_config.method for ir in irs] == ["A", "B"]
    first = irs[0]
    assert first.request_type == RequestType.DUBBO
    config = first.dubbo_backend_config
    assert (config.application_name, config.group, config.version) == ("app", "g", "1.0.0")
    assert (config.interface, config.retries, config.cluster_name) == ("com.I", "3", "cluster")