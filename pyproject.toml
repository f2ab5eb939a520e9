[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chatlog"
version = "0.1.0"
description = "Building blocks for chat history tools: time expressions, .dat image decoding, decompression, file monitoring, temporary copies and configuration"
requires-python = ">=3.10"
keywords = [
    "chat",
    "chatlog",
    "time-range",
    "dat",
    "image-decoding",
    "file-monitor",
    "lz4",
    "zstd",
]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: Utilities",
]
dependencies = [
    "cryptography",
    "lz4",
    "zstandard",
    "watchdog",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["chatlog"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
