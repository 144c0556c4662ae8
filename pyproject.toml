[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "emitterkit"
version = "0.1.0"
description = "Building blocks for a publish/subscribe broker: replicated last-write-wins state, cluster events, errors and configuration."
requires-python = ">=3.10"
dependencies = []
keywords = ["crdt", "pubsub", "lww", "cluster", "replication", "broker"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
emitterkit = "emitterkit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["emitterkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
