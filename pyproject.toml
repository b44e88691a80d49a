[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ocpadmission"
version = "0.1.0"
description = "Admission and authorization helpers: token scopes to policy rules, exact-match label selectors, security context constraint strategies and server flag building"
requires-python = ">=3.10"
dependencies = []
keywords = ["admission", "authorization", "rbac", "scopes", "label-selector", "security-context", "capabilities"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ocpadmission"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
