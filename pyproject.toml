[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mxkit"
version = "0.1.0"
description = "Building blocks for event-driven embedded-style software: clock and timers, circular allocator, ring buffer, message queues, hierarchical state machine, cooperative scheduler and a framed serial link protocol."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "embedded",
    "scheduler",
    "state-machine",
    "hsm",
    "message-queue",
    "allocator",
    "ring-buffer",
    "serial-protocol",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mxkit"]

[tool.hatch.build.targets.sdist]
include = ["mxkit", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
