"""
Real-Time Hand Pose Recognition
================================

Turns a live camera feed into a classified hand gesture with an
on-screen skeleton overlay.

Modules:
    - core: Domain types, single-slot channels, recognition worker
    - capture: Camera frame source
    - detection: Palm detection, ROI tracking, landmark inference
    - recognition: Geometric gesture classification and motion detection
    - visualization: Overlay drawing and adaptive frame compositor
    - models: Inference engine backends
    - utils: Configuration, logging, performance monitoring
"""

__version__ = "1.0.0"
__author__ = "HCI Team"
