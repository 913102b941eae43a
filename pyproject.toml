[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "txbot"
version = "0.1.0"
description = "Configuration, event filters, wallet aliases and cache for a notifier of new transactions on Cosmos SDK chains."
requires-python = ">=3.11"
dependencies = [
    "tomli-w",
]
keywords = ["cosmos", "tendermint", "blockchain", "transactions", "notifications", "telegram", "toml"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
txbot = "txbot.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["txbot"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
