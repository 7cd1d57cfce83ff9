[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pixiu"
version = "0.1.0"
description = "Route tables, API discovery and registry loaders for an API gateway, with sample record providers and a small HTTP user service"
requires-python = ">=3.10"
dependencies = []
keywords = ["gateway", "router", "api", "discovery", "registry", "dubbo", "consul", "zookeeper"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Internet :: WWW/HTTP",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pixiu-user-server = "pixiu.http_server:main"

[tool.hatch.build.targets.wheel]
packages = ["pixiu"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
