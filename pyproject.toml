[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinyshell"
version = "0.1.0"
description = "A tiny Unix shell with job control, plus a trace runner and driver for testing shells against a reference"
requires-python = ">=3.10"
dependencies = []
keywords = ["shell", "job control", "signals", "unix", "testing", "trace"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Shells",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tinyshell = "tinyshell.shell:main"
tinyshell-runtrace = "tinyshell.runtrace:main"
tinyshell-sdriver = "tinyshell.sdriver:main"
tinyshell-mycat = "tinyshell.testprogs:mycat_main"
tinyshell-myenv = "tinyshell.testprogs:myenv_main"
tinyshell-myintp = "tinyshell.testprogs:myintp_main"
tinyshell-myints = "tinyshell.testprogs:myints_main"
tinyshell-myspin1 = "tinyshell.testprogs:myspin_main"
tinyshell-myspin2 = "tinyshell.testprogs:myspin_main"
tinyshell-mysplit = "tinyshell.testprogs:mysplit_main"
tinyshell-mysplitp = "tinyshell.testprogs:mysplitp_main"
tinyshell-mytstpp = "tinyshell.testprogs:mytstpp_main"
tinyshell-mytstps = "tinyshell.testprogs:mytstps_main"

[tool.hatch.build.targets.wheel]
packages = ["tinyshell"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
