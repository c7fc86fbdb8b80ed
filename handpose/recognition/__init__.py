from handpose.recognition.gesture_classifier import GestureClassifier, GestureClassifierConfig
from handpose.recognition.motion_tracker import MotionTracker, MotionTrackerConfig
