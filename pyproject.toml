[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "multiludens"
version = "0.1.0"
description = "A small top-down multiplayer shooter with a TCP game server and a pygame client"
requires-python = ">=3.10"
dependencies = ["pygame"]
keywords = ["game", "multiplayer", "shooter", "pygame", "tcp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: X11 Applications",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Arcade",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
multiludens-server = "multiludens.server:main"
multiludens-client = "multiludens.client:main"

[tool.hatch.build.targets.wheel]
packages = ["multiludens"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
