[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "daqstream"
version = "1.5.0"
description = "Framing, decoding and bookkeeping for a msgpack-based data acquisition streaming protocol"
requires-python = ">=3.10"
dependencies = [
    "msgpack",
]
keywords = ["daq", "streaming", "msgpack", "measurement", "signals", "protocol"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
]

[project.optional-dependencies]
test = [
    "pytest",
    "msgpack",
]

[tool.hatch.build.targets.wheel]
packages = ["daqstream"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
