[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imonitor"
version = "0.1.0"
description = "Monitor message protocol structures, CRC checksums, handle and lock helpers, and task loopers for system event monitoring."
requires-python = ">=3.10"
dependencies = []
keywords = ["monitoring", "protocol", "crc", "event-loop", "timers"]
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
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["imonitor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
