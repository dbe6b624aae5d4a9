[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fabriclib"
version = "0.1.0"
description = "Metrics providers (StatsD, Prometheus-style, disabled), metric naming, runtime statistics, metrics reference generation and HTTP health checks"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "metrics",
    "statsd",
    "prometheus",
    "health-check",
    "monitoring",
    "documentation",
    "wsgi",
]
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
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
fabriclib-gendoc = "fabriclib.gendoc_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fabriclib"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
