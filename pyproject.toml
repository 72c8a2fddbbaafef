[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "awserver"
version = "0.13.1"
description = "Local HTTP server that keeps activity-tracking buckets, events and settings"
requires-python = ">=3.11"
keywords = ["activity", "time-tracking", "http", "server", "rest", "flask"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "flask",
    "platformdirs",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
aw-server = "awserver.main:main"

[tool.hatch.build.targets.wheel]
packages = ["awserver"]

[tool.pytest.ini_options]
addopts = "-ra"
