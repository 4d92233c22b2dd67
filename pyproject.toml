[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "acciping"
version = "0.1.0"
description = "Storage, statistics and a compact binary file format for ping latency captures"
requires-python = ">=3.10"
dependencies = []
keywords = ["ping", "latency", "network", "monitoring", "statistics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["acciping"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
