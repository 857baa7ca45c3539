[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvtools"
version = "0.1.0"
description = "Teaching-kernel building blocks: Sv39 page tables with copy-on-write, ELF headers, a minimal printf and small file utilities"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "risc-v",
    "sv39",
    "page-table",
    "copy-on-write",
    "elf",
    "printf",
    "coreutils",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv-cat = "xvtools.commands:cat_main"
xv-echo = "xvtools.commands:echo_main"
xv-wc = "xvtools.commands:wc_main"
xv-ls = "xvtools.commands:ls_main"
xv-kill = "xvtools.commands:kill_main"
xv-ln = "xvtools.commands:ln_main"
xv-mkdir = "xvtools.commands:mkdir_main"
xv-rm = "xvtools.commands:rm_main"

[tool.hatch.build.targets.wheel]
packages = ["xvtools"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
