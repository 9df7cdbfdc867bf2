[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flagproviders"
version = "0.1.0"
description = "Feature flag providers for GO Feature Flag, LaunchDarkly and Harness with a common resolution model"
requires-python = ">=3.10"
keywords = ["feature-flags", "openfeature", "feature-toggles", "launchdarkly", "harness", "go-feature-flag"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["flagproviders"]

[tool.pytest.ini_options]
addopts = "-ra"
