[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvsim"
version = "0.1.0"
description = "A simulation of a small teaching Unix: on-disk file system, buffer cache, log, pipes, process table and console tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "operating-system",
    "simulation",
    "teaching",
    "unix",
    "mkfs",
    "grep",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xvsim-mkfs = "xvsim.mkfs:main"
xvsim-grep = "xvsim.grep:main"

[tool.hatch.build.targets.wheel]
packages = ["xvsim"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
