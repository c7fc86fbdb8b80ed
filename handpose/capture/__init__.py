from handpose.capture.camera_manager import CameraConfig, CameraSource
