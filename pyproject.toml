[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "poserp"
version = "0.1.0"
description = "Point-of-sale back-office core: branch finances, sales, suppliers, transactions and cached sales sessions on MongoDB and Redis"
requires-python = ">=3.11"
keywords = ["point-of-sale", "pos", "erp", "mongodb", "redis", "retail", "accounting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Point-Of-Sale",
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "pymongo>=4.6",
    "redis>=5.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[tool.hatch.build.targets.wheel]
packages = ["poserp"]

[tool.hatch.build.targets.sdist]
include = ["poserp", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
