[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "seekzstd"
version = "1.0.0"
description = "Seekable zstd compression: a frame-indexed archive format and a gzip-style command-line tool"
requires-python = ">=3.10"
keywords = ["zstd", "zstandard", "compression", "seekable", "archive"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Compression",
]
dependencies = [
    "zstandard",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
gzstd = "seekzstd.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["seekzstd"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
