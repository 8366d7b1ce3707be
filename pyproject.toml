[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "jointmotor"
version = "0.1.0"
description = "CAN bus driver logic for a joint motor: command frames, status decoding and safety halting"
requires-python = ">=3.10"
dependencies = []
keywords = ["can", "canbus", "motor", "driver", "robotics", "servo"]
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
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["jointmotor"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
