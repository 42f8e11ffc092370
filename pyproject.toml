[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tdexa"
version = "0.1.0"
description = "Market data loading and exchange-rate conversion for TDEX liquidity provider analytics"
requires-python = ">=3.10"
keywords = ["tdex", "liquid", "exchange-rates", "market-data", "analytics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
tdexa-datagen = "tdexa.datagen:main"

[tool.hatch.build.targets.wheel]
packages = ["tdexa"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
