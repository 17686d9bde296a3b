[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sixfs"
version = "0.1.0"
description = "A small block file system: disk images, buffer cache, redo log, inodes, directories, pipes and a few classic tools"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "inode", "journal", "redo log", "disk image", "mkfs", "grep"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sixfs-mkfs = "sixfs.mkfs:main"
sixfs-grep = "sixfs.grep:main"
sixfs-tools = "sixfs.tools:main"

[tool.hatch.build.targets.wheel]
packages = ["sixfs"]

[tool.pytest.ini_options]
addopts = "-ra"
