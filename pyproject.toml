[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "npcbrain"
version = "0.1.0"
description = "Config-driven NPC behaviour core: blackboard, rule conditions, finite state machines and behaviour trees, with JSON, HTTP and MongoDB config sources."
requires-python = ">=3.10"
keywords = [
    "npc",
    "ai",
    "behaviour-tree",
    "behavior-tree",
    "fsm",
    "state-machine",
    "blackboard",
    "game-server",
]
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
    "Topic :: Games/Entertainment :: Simulation",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pymongo>=4.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
npcbrain-sync = "npcbrain.sync:main"

[tool.hatch.build.targets.wheel]
packages = ["npcbrain"]

[tool.hatch.build.targets.sdist]
include = ["npcbrain", "tests", "README.md", "pyproject.toml"]

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
