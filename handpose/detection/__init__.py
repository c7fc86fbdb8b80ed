from handpose.detection.palm_detector import PalmDetector, PalmDetectorConfig, pick_primary_region
from handpose.detection.landmark_engine import LandmarkEngine, LandmarkEngineConfig
from handpose.detection.tracking import HandTracker, HandTrackerConfig
from handpose.detection.handpose_engine import HandposeEngine, build_handpose_engine
