[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kilt"
version = "0.1.0"
description = "Inference benchmark harness pieces: environment-driven configuration, BERT sequence packing, anchor box decoding with NMS, and a network client."
requires-python = ">=3.10"
dependencies = []
keywords = ["benchmark", "inference", "mlperf", "bert", "nms", "object-detection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kilt"]

[tool.pytest.ini_options]
addopts = "-ra"
