[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "provisio"
version = "0.4.4"
description = "Declarative dependency injection: injectables, providers, modules and scopes"
requires-python = ">=3.10"
dependencies = []
keywords = ["dependency", "injection", "dependency-injection", "ioc", "provider"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["provisio"]

[tool.hatch.build.targets.sdist]
include = ["provisio", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
