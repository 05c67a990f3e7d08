[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cvsolvers"
version = "0.1.0"
description = "Geometric solvers for computer vision: Lambda Twist P3P, eight-point and five-point essential matrix estimation, and binary descriptor matching."
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = [
    "computer-vision",
    "p3p",
    "pose-estimation",
    "essential-matrix",
    "eight-point",
    "five-point",
    "feature-matching",
    "hamming",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest", "numpy"]

[tool.hatch.build.targets.wheel]
packages = ["cvsolvers"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
