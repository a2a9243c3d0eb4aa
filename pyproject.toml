[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blockfs"
version = "0.1.0"
description = "An in-memory, block-structured filesystem with directories, hard links, symlinks and reader/writer accounting"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "blocks", "inode", "in-memory", "storage"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["blockfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
