[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sbx"
version = "0.1.0"
description = "Run commands under macOS sandbox-exec policies built from command-line flags"
requires-python = ">=3.10"
dependencies = []
keywords = ["sandbox", "sandbox-exec", "macos", "sbpl", "security"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sbx = "sbx.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["sbx"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
