[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "servodrive"
version = "0.1.0"
description = "Modbus ASCII slave protocol stack, CRC-16 and EEPROM cell storage for a servo drive controller"
requires-python = ">=3.10"
dependencies = []
keywords = ["modbus", "modbus-ascii", "crc16", "lrc", "eeprom", "slave", "servo"]
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
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["servodrive"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
