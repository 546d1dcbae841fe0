[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "qnify"
version = "0.1.0"
description = "JSON API server for courses, attendance and OTP/OAuth authentication"
requires-python = ">=3.10"
keywords = ["api", "server", "flask", "jwt", "otp", "oauth", "courses", "attendance"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "flask>=2.3",
    "pyjwt>=2.8",
    "pyyaml>=6.0",
    "redis>=5.0",
    "requests>=2.31",
    "pymysql>=1.1",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "responses>=0.24",
]

[project.scripts]
qnify = "qnify.app:main"

[tool.hatch.build.targets.wheel]
packages = ["qnify"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
