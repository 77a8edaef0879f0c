[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "macrokit"
version = "0.1.0"
description = "Bit-packed record classes, generated builders, sorted-order checks and token sequence expansion"
requires-python = ">=3.10"
dependencies = []
keywords = ["bitfield", "builder", "code generation", "sorted", "sequence expansion"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Code Generators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["macrokit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
