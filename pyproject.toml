[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "oomtools"
version = "0.1.0"
description = "Helpers for reading and writing cgroup v2 control files, parsing plugin arguments and building filesystem fixtures for out-of-memory handling"
requires-python = ">=3.10"
dependencies = []
keywords = ["cgroup", "cgroup2", "oom", "memory", "pressure", "psi", "linux"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["oomtools"]

[tool.pytest.ini_options]
addopts = "-ra"
