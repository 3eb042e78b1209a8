[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "moskernel"
version = "0.1.0"
description = "A model of a small teaching kernel: page allocation, environments, scheduling, ELF loading and system calls"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "operating-system", "elf", "scheduler", "mips", "teaching"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
moskernel-readelf = "moskernel.readelf:main"

[tool.hatch.build.targets.wheel]
packages = ["moskernel"]

[tool.pytest.ini_options]
addopts = "-ra"
