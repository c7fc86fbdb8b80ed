#!/usr/bin/env python3
"""
Model inspection utility.
Prints the input/output names and shapes of the configured palm
detector and landmark models.
"""

import sys
import argparse

from handpose.core.errors import ModelLoadError
from handpose.models.inference_engine import InferenceConfig, create_inference_engine
from handpose.utils.config import Config


def print_model(title, engine):
    info = engine.describe()
    print("{}: {}".format(title, info.get("path", "?")))
    print("  input  {} {}".format(info["input"]["name"], info["input"]["shape"]))
    for output in info["outputs"]:
        print("  output {} {}".format(output["name"], output["shape"]))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Show model input/output shapes")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    args = parser.parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    inference_cfg = InferenceConfig.from_dict(config.inference)

    status = 0
    for title, section in (("Palm detector", config.palm_detector), ("Landmark model", config.landmark)):
        path = config.resolve_path(section.get("model_path", ""))
        try:
            engine = create_inference_engine(path, inference_cfg)
        except ModelLoadError as e:
            print("{}: ✗ {}".format(title, e))
            status = 1
            continue
        print_model(title, engine)
        engine.close()
    return status


if __name__ == "__main__":
    sys.exit(main())
