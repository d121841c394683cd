[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mrjsystem"
version = "0.1.0"
description = "A small distributed system of a Gotham coordinator, Fleck clients and Enigma/Harley workers talking over fixed-size TCP frames."
requires-python = ">=3.10"
dependencies = []
keywords = ["distributed", "sockets", "tcp", "frames", "heartbeat", "workers", "coordinator"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mrj-gotham = "mrjsystem.gotham_server:main"
mrj-fleck = "mrjsystem.fleck:main"
mrj-enigma = "mrjsystem.worker_node:main_enigma"
mrj-harley = "mrjsystem.worker_node:main_harley"

[tool.hatch.build.targets.wheel]
packages = ["mrjsystem"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
