[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stanix"
version = "0.1.0"
description = "A simulated hobby kernel core: virtual filesystem, tmpfs, tar initrd, pipes, ttys, framebuffer terminal and x86_64 descriptor tables"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "vfs", "tmpfs", "tty", "paging", "simulation", "x86_64"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: System :: Filesystems",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["stanix"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
