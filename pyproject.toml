[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chfs"
version = "0.1.0"
description = "Storage-side building blocks of a consistent-hashing distributed file system: key-value and directory-tree chunk backends, ring neighbours and tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "distributed",
    "consistent-hashing",
    "key-value",
    "inode",
    "ring",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
chkvdump = "chfs.kvdump:main"

[tool.hatch.build.targets.wheel]
packages = ["chfs"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
