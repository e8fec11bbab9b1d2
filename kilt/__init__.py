"""Inference benchmark harness: environment configuration, BERT packing, detection post-processing and a network client."""

__version__ = "0.1.0"