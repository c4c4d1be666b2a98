[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zmpipe"
version = "0.1.0"
description = "Plugin-based video monitoring pipelines: frame fan-out, motion detection and events"
requires-python = ">=3.10"
keywords = ["video", "surveillance", "pipeline", "motion-detection", "plugins", "h264"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
zmpipe = "zmpipe.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["zmpipe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
