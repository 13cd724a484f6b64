[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "greybus"
version = "0.1.0"
description = "Greybus operation messages, wire formats and Control and Camera protocol handlers"
requires-python = ">=3.10"
dependencies = []
keywords = ["greybus", "unipro", "embedded", "protocol", "camera", "i2c", "sdio", "hid"]
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
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["greybus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
