[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "claudecat"
version = "0.1.0"
description = "Caching, cost and burn-rate calculations and report rendering for Claude Code token usage"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "claude",
    "tokens",
    "usage",
    "cost",
    "burn-rate",
    "lru-cache",
    "reporting",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
claudecat = "claudecat.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["claudecat"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
