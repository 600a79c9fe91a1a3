[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "propdetect"
version = "0.1.0"
description = "Detect spinning propellers in event-camera streams from the periodicity of event bursts"
requires-python = ">=3.10"
keywords = [
    "event camera",
    "neuromorphic",
    "propeller",
    "quadcopter",
    "drone detection",
    "burst detection",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["propdetect"]

[tool.hatch.build.targets.sdist]
include = [
    "propdetect",
    "tests",
]

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
