# pixiu

Building blocks for an API gateway.

- `pixiu.model` holds the shared data types. These are `API`, `Method`, `Resource`, `APIConfig`, `IntegrationRequest`, `DubboBackendConfig`, `HTTPVerb` and `RequestType`. The module also has the `Loader` base class for registries.
- `pixiu.router` is a thread-safe route table keyed by URL pattern. It supports `:param` wildcard segments and compares paths without regard to case.
- `pixiu.discovery` is an in-memory API discovery service that loads nested resource definitions into a route table.
- `pixiu.registry` reads dubbo service URLs from Consul and ZooKeeper registries and turns them into integration requests.
- `pixiu.providers` holds in-memory record stores and sample providers for users, students and teachers.
- `pixiu.http_server` is a small HTTP user service.

The package has no dependencies outside the standard library.

## Install

```
pip install .
```

To install the test tools as well:

```
pip install .[test]
```

## Routing

```python
from pixiu.model import API, HTTPVerb, Method
from pixiu.router import Route, wildcard_match

route = Route()
route.put_api(API(url_pattern="/users/:id", method=Method(http_verb=HTTPVerb.GET)))

api = route.find_api("/Users/42", HTTPVerb.GET)
print(api.url_pattern)                          # /users/:id
print(wildcard_match("/users/:id", "/users/42"))  # {'id': ['42']}
```

`wildcard_match` returns `None` when the paths do not match.

The route table has these methods:

- `put_api` raises `RouteError` when the verb already exists on the matching node.
- `update_api` replaces an existing method. It does nothing when that method does not exist.
- `find_api` returns `None` when nothing matches.

`get_uri_params(api, raw_url)` returns the parameters that a full URL yields under an API's pattern. `is_wildcard_backend_path(api)` tells whether the backend path of the API's method contains parameters.

## Discovery

```python
from pixiu.discovery import LocalMemoryAPIDiscoveryService, load_api_from_resource
from pixiu.model import HTTPVerb, Method, Resource

resources = [
    Resource(
        path="/mock",
        methods=[Method(http_verb=HTTPVerb.GET)],
        resources=[Resource(path="/:id", methods=[Method(http_verb=HTTPVerb.PUT)])],
    )
]

service = LocalMemoryAPIDiscoveryService()
load_api_from_resource("", resources, None, service)
service.get_api("/mock", HTTPVerb.GET)
service.get_api("/mock/12345", HTTPVerb.PUT)   # matches /:id
```

`get_api` raises `DiscoveryError("not found")` when no API matches. The loader collects every problem and raises them together as one `DiscoveryError`. Problems are resource paths that do not start with `/`, and verbs that appear twice on one path.

A process-wide registry of discovery services also exists:

- `init()` registers a fresh local-memory service.
- `set_api_discovery_service` and `get_api_discovery_service` store and fetch services by name.
- `init_apis_from_config` loads an `APIConfig` into the registered service.
- `refresh_apis_from_config` builds a new service. It registers the new service only if loading succeeds.

## Registries

- `ConsulRegistryLoad(address, cluster)` reads the agent's services through the Consul HTTP API, using the filter `dubbo in Tags`. You can pass it a client of your own.
- `ZookeeperRegistryLoad(address, cluster, client)` lists `/dubbo/<interface>/providers`. You must supply the client, which is any object with a `get_children(path)` method.

Both loaders return `ServiceURL` objects. They raise `RegistryError` when the registry cannot be read. Malformed entries are logged and skipped.

Other functions work on service URLs:

- `parse_service_url` parses a raw URL.
- `consul_service_to_url` converts a Consul service description.
- `transfer_url_to_api` yields one `IntegrationRequest` per method of a service.

## Sample providers

`make_user_provider()`, `make_student_provider()` and `make_teacher_provider()` each return a `RecordProvider` seeded with two records. Each provider offers `create`, `get_by_name`, `get_by_code`, `get_by_name_and_age`, `update` and `update_by_name`. Failures raise `ProviderError`. A `RecordStore` accepts a record only when both its name and its code are new, the name is non-empty and the code is positive.

## Sample user service

```
pixiu-user-server --host 127.0.0.1 --port 1314
```

The service starts with two users, `tc` and `ic`, and answers these requests:

- `GET /user/<name>` and `GET /user/?name=<name>` return the user as JSON, or 404 if there is no such user.
- `POST /user/` with a JSON body adds a user with a random five-letter id. If the name is already taken, the reply is `{"message":"data is exist"}`. A malformed body gets 400.

The request logic is also available without a server, as `handle_get` and `handle_post`. `make_server` builds the server without starting it.

## What it does not do

The package does not contain a gateway that accepts client requests and forwards them to dubbo or HTTP backends. It only builds and queries the route table and the service descriptions. Plugin groups and filter chains in an `APIConfig` are not loaded. No ZooKeeper client is included.

## Tests

```
pytest
```