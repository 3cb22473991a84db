[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "scionkit"
version = "0.1.0"
description = "Helpers for SCION networking tools: SSH-style configuration, known_hosts checking, path selectors, proxy helpers and tunnel payload decoding"
requires-python = ">=3.10"
dependencies = []
keywords = ["scion", "ssh", "known_hosts", "path-selection", "proxy", "networking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["scionkit"]

[tool.pytest.ini_options]
addopts = "-ra"
