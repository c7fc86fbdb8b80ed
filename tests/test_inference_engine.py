"""
Tests for Inference Engine Selection
=====================================
"""

import pytest

from conftest import FakeEngine, palm_outputs

from handpose.core.errors import ModelLoadError
from handpose.models.inference_engine import InferenceConfig, create_inference_engine


class TestCreateInferenceEngine:
    """Test suite for backend selection and load errors."""

    def test_missing_model(self, tmp_path):
        with pytest.raises(ModelLoadError):
            create_inference_engine(str(tmp_path / "missing.onnx"))

    def test_corrupt_model(self, tmp_path):
        path = tmp_path / "broken.onnx"
        path.write_bytes(b"not a model")
        with pytest.raises(ModelLoadError):
            create_inference_engine(str(path))

    def test_unknown_backend(self, tmp_path):
        with pytest.raises(ValueError):
            create_inference_engine(str(tmp_path / "m.onnx"), InferenceConfig(backend="tensorrt"))

    def test_config_from_dict(self):
        cfg = InferenceConfig.from_dict({"device": "cuda"})
        assert cfg.device == "cuda"
        assert cfg.backend == "onnxruntime"
        assert cfg.intra_op_threads == 2


class TestDescribe:
    """The base describe() summarises any engine's interface."""

    def test_describe(self):
        info = FakeEngine(palm_outputs()).describe()
        assert info["input"] == {"name": "input", "shape": [1, 192, 192, 3]}
        assert info["outputs"] == ["out0", "out1"]
