[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gobbical"
version = "0.1.0"
description = "Energy calibration, peak finding and spectrum tools for the Gobbi silicon telescope array"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
]
keywords = [
    "nuclear physics",
    "silicon detector",
    "calibration",
    "alpha source",
    "peak finding",
    "histogram",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
gobbical-calibrate = "gobbical.calibration:main"

[tool.hatch.build.targets.wheel]
packages = ["gobbical"]

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
ignore_missing_imports = true
