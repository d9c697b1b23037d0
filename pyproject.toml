[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "choreography"
version = "0.1.1"
description = "Choreographic programming with effect handlers: describe multiparty protocols as data and run them through pluggable handlers."
requires-python = ">=3.10"
dependencies = []
keywords = ["choreography", "session types", "effects", "protocols", "asyncio", "distributed"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Framework :: AsyncIO",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["choreography"]

[tool.hatch.build.targets.sdist]
include = ["choreography", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
