[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "egressgw"
version = "0.1.0"
description = "ipset management and egress gateway IP bookkeeping helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["ipset", "egress", "gateway", "networking", "eip"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["egressgw"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
