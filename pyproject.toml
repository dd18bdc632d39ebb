[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yaffskit"
version = "0.1.0"
description = "YAFFS1/YAFFS2 NAND tag packing, tag ECC and NAND access layers"
requires-python = ">=3.10"
dependencies = []
keywords = ["yaffs", "yaffs2", "nand", "flash", "filesystem", "oob", "tags", "ecc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["yaffskit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
