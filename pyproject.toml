[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "macce"
version = "0.1.0"
description = "Encoder for 5G NR MAC control elements described in a plain-text input file"
requires-python = ">=3.10"
dependencies = []
keywords = ["5g", "nr", "mac", "control-element", "pdu", "encoder", "telecom"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Telephony",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
macce = "macce.parser:main"

[tool.setuptools]
packages = ["macce"]

[tool.pytest.ini_options]
addopts = "-ra"
