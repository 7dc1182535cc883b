[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tfplanbot"
version = "0.1.0"
description = "Pull-request driven Terraform planning: project discovery, locking, hooks and markdown reporting."
requires-python = ">=3.10"
keywords = ["terraform", "pull-request", "locking", "plan", "infrastructure"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "pyyaml",
    "packaging",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tfplanbot"]

[tool.pytest.ini_options]
addopts = "-ra"
