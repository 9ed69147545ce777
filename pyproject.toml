[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "peerpressure"
version = "0.1.0"
description = "BitTorrent building blocks: bencoding, metainfo parsing and creation, peer wire messages, PEX, Merkle trees and data verification"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bittorrent",
    "torrent",
    "peer-to-peer",
    "p2p",
    "bencode",
    "pex",
    "merkle",
    "metainfo",
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
    "Topic :: Communications :: File Sharing",
    "Topic :: Internet",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["peerpressure"]

[tool.hatch.build.targets.sdist]
include = ["peerpressure", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
