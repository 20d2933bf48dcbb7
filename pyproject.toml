[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "canprobe"
version = "0.1.0"
description = "SocketCAN structures and raw CAN socket test tools for Linux"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "can",
    "socketcan",
    "canfd",
    "canxl",
    "j1939",
    "isotp",
    "bcm",
    "netlink",
    "automotive",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems :: Controller Area Network (CAN)",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
canprobe-sendto = "canprobe.rawsock:main"
canprobe-echo = "canprobe.canecho:main"
canprobe-errdump = "canprobe.errdump:main"
canprobe-filter = "canprobe.rawfilter:main"
canprobe-sockopt = "canprobe.rawsockopt:main"
canprobe-dump = "canprobe.rawdump:main"

[tool.hatch.build.targets.wheel]
packages = ["canprobe"]

[tool.hatch.build.targets.sdist]
include = ["canprobe", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
