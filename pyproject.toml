[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "appam"
version = "0.1.0"
description = "Package Patch Applier Module: plan and apply APRIL reconstruction patches to dpkg packages"
requires-python = ">=3.10"
dependencies = []
keywords = ["dpkg", "deb", "debian", "packaging", "patch", "april"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Packaging",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
appam = "appam.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["appam"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
