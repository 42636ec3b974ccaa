[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ipldcar"
version = "0.1.0"
description = "Read, inspect and rewrite CAR (Content Addressable aRchive) files, versions 1 and 2"
requires-python = ">=3.10"
dependencies = ["cbor2"]
keywords = ["car", "ipld", "cid", "multihash", "varint", "archive", "content-addressing"]
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
    "Topic :: System :: Archiving",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["ipldcar"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
