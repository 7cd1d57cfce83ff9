import pytest

from pixiu.discovery import (
    LOCAL_MEMORY_API_DISCOVERY_SERVICE,
    DiscoveryError,
    LocalMemoryAPIDiscoveryService,
    get_api_discovery_service,
    init,
    init_apis_from_config,
    load_api_from_methods,
    load_api_from_resource,
    refresh_apis_from_config,
    set_api_discovery_service,
)
from pixiu.model import API, APIConfig, HTTPVerb, Method, Resource
from pixiu.router import RouteError


def mock_api(verb, path):
    return API(url_pattern=path, method=Method(http_verb=verb))


def mock_method(verb):
    return Method(http_verb=verb)


def sample_config():
    return APIConfig(
        name="api name",
        resources=[
            Resource(
                path="/",
                methods=[mock_method(HTTPVerb.GET)],
                resources=[
                    Resource(
                        path="/mockTest",
                        methods=[mock_method(HTTPVerb.GET), mock_method(HTTPVerb.POST)],
                        resources=[Resource(path="/:id", methods=[mock_method(HTTPVerb.GET)])],
                    )
                ],
            )
        ],
    )


def test_new_service_has_empty_router():
    service = LocalMemoryAPIDiscoveryService()
    assert len(service.router) == 0


def test_add_api():
    service = LocalMemoryAPIDiscoveryService()
    service.add_api(mock_api(HTTPVerb.PUT, "/this/is/test"))
    found = service.router.find_api("/this/is/test", HTTPVerb.PUT)
    assert found.url_pattern == "/this/is/test"


def test_add_api_duplicate_raises():
    service = LocalMemoryAPIDiscoveryService()
    service.add_api(mock_api(HTTPVerb.PUT, "/x"))
    with pytest.raises(RouteError):
        service.add_api(mock_api(HTTPVerb.PUT, "/x"))


def test_get_api():
    service = LocalMemoryAPIDiscoveryService()
    service.add_api(mock_api(HTTPVerb.PUT, "/this/is/test"))
    assert service.get_api("/this/is/test", HTTPVerb.PUT).url_pattern == "/this/is/test"
    with pytest.raises(DiscoveryError, match="not found"):
        service.get_api("/this/is/test/or/else", HTTPVerb.PUT)


def test_load_api():
    init()
    init_apis_from_config(sample_config())
    service = get_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE)
    assert service.get_api("/", HTTPVerb.GET).url_pattern == "/"
    assert service.get_api("/mockTest", HTTPVerb.GET).url_pattern == "/mocktest"
    assert service.get_api("/mockTest", HTTPVerb.POST).url_pattern == "/mocktest"
    assert service.get_api("/mockTest/12345", HTTPVerb.GET).url_pattern == "/mocktest/:id"


def test_load_api_from_resource():
    service = LocalMemoryAPIDiscoveryService()
    put, post, get = (mock_method(v) for v in (HTTPVerb.PUT, HTTPVerb.POST, HTTPVerb.GET))
    resources = [
        Resource(
            path="/",
            description="test only",
            methods=[put, post, get],
            resources=[
                Resource(path="/mock", description="test only", methods=[put, post, get]),
                Resource(
                    path="/mock2",
                    description="test only",
                    methods=[put],
                    resources=[Resource(path="/:id", description="test only", methods=[put])],
                ),
            ],
        )
    ]
    load_api_from_resource("", resources, None, service)
    assert service.get_api("/", HTTPVerb.PUT).url_pattern == "/"
    assert service.get_api("/", HTTPVerb.GET).url_pattern == "/"
    assert service.get_api("/mock", HTTPVerb.GET).url_pattern == "/mock"
    assert service.get_api("/mock2/12345", HTTPVerb.PUT).url_pattern == "/mock2/:id"

    resources = [
        Resource(
            path="/mock",
            methods=[put],
            resources=[
                Resource(path=":id", methods=[put]),
                Resource(path=":ik", methods=[put]),
            ],
        )
    ]
    service = LocalMemoryAPIDiscoveryService()
    with pytest.raises(DiscoveryError) as info:
        load_api_from_resource("", resources, None, service)
    assert str(info.value) == (
        "Path :id in /mock doesn't start with /; Path :ik in /mock doesn't start with /"
    )


def test_load_api_from_resource_merges_headers():
    service = LocalMemoryAPIDiscoveryService()
    resources = [
        Resource(
            path="/a",
            headers={"x-a": "1"},
            methods=[mock_method(HTTPVerb.GET)],
            resources=[Resource(path="/b", headers={"x-b": "2"}, methods=[mock_method(HTTPVerb.GET)])],
        )
    ]
    load_api_from_resource("", resources, None, service)
    assert service.get_api("/a/b", HTTPVerb.GET).headers == {"x-a": "1", "x-b": "2"}


def test_load_api_from_methods():
    methods = [mock_method(HTTPVerb.PUT), mock_method(HTTPVerb.GET), mock_method(HTTPVerb.PUT)]
    service = LocalMemoryAPIDiscoveryService()
    with pytest.raises(DiscoveryError) as info:
        load_api_from_methods("/mock", methods, None, service)
    assert service.get_api("/mock", HTTPVerb.PUT).url_pattern == "/mock"
    assert service.get_api("/mock", HTTPVerb.GET).url_pattern == "/mock"
    assert str(info.value) == "Path: /mock, Method: PUT, error: Method PUT already exists in path /mock"


def test_api_config_change_replaces_apis():
    service = LocalMemoryAPIDiscoveryService()
    service.add_api(mock_api(HTTPVerb.GET, "/old"))
    assert service.api_config_change(sample_config()) is True
    with pytest.raises(DiscoveryError):
        service.get_api("/old", HTTPVerb.GET)
    assert service.get_api("/mockTest/7", HTTPVerb.GET).url_pattern == "/mocktest/:id"


def test_get_unknown_service_raises():
    with pytest.raises(DiscoveryError):
        get_api_discovery_service("no-such-service")


def test_set_and_get_service():
    service = LocalMemoryAPIDiscoveryService()
    set_api_discovery_service("custom-service", service)
    assert get_api_discovery_service("custom-service") is service


def test_refresh_apis_from_config_replaces_only_on_success():
    init()
    before = get_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE)
    refresh_apis_from_config(sample_config())
    after = get_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE)
    assert after is not before
    assert after.get_api("/mockTest", HTTPVerb.POST).url_pattern == "/mocktest"

    bad = APIConfig(resources=[Resource(path="nope", methods=[mock_method(HTTPVerb.GET)])])
    with pytest.raises(DiscoveryError):
        refresh_apis_from_config(bad)
    assert get_api_discovery_service(LOCAL_MEMORY_API_DISCOVERY_SERVICE) is after