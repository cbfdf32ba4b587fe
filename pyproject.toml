[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imagetool"
version = "0.1.8"
description = "Everyday image and animated GIF operations on in-memory image data"
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["image", "gif", "png", "crop", "rotate", "resize", "animation"]
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
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["imagetool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
