[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "converge"
version = "0.1.0"
description = "Command-line helpers for iterative LLM critique rounds over plans, implementations and code reviews"
requires-python = ">=3.10"
dependencies = []
keywords = ["llm", "code-review", "critique", "codex", "claude", "cli"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
converge = "converge.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["converge"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
