[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubemon"
version = "0.1.0"
description = "Building blocks for exporting Kubernetes events to Cloud Logging and kubelet/controller metrics to Cloud Monitoring."
requires-python = ">=3.10"
keywords = [
    "kubernetes",
    "monitoring",
    "logging",
    "events",
    "kubelet",
    "metrics",
    "stackdriver",
    "gce",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Logging",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["kubemon"]

[tool.hatch.build.targets.sdist]
include = [
    "kubemon",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
