"""Inference engine backends."""
from .inference_engine import InferenceConfig, InferenceEngine, OnnxRuntimeEngine, create_inference_engine

__all__ = ["InferenceConfig", "InferenceEngine", "OnnxRuntimeEngine", "create_inference_engine"]
