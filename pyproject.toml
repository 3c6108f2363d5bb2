[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "phasefof"
version = "0.99.9"
description = "Building blocks for a phase-space halo finder: halo records, mass definitions, boundary group linking, integer hashing and reliable sockets"
requires-python = ">=3.10"
keywords = ["astronomy", "cosmology", "halo finder", "n-body", "phase-space", "friends-of-friends"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Astronomy",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["phasefof"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
