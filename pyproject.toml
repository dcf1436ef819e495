[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "saturnd"
version = "0.1.0"
description = "A small cron-like task scheduler daemon with a command-line client talking over named pipes"
requires-python = ">=3.10"
dependencies = []
keywords = ["cron", "scheduler", "daemon", "fifo", "tasks"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cassini = "saturnd.cli:main"
saturnd = "saturnd.daemon:main"

[tool.hatch.build.targets.wheel]
packages = ["saturnd"]

[tool.pytest.ini_options]
addopts = "-ra"
