from handpose.visualization.compositor import CadenceController, CompositorConfig, FrameCompositor, compose_frame
from handpose.visualization.overlay import HAND_CONNECTIONS, draw_label, draw_palm_regions, draw_skeleton
