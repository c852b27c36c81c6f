"""
Geometry helpers: coordinate repair and bounding boxes.
"""

from spacelens.geometry.bbox import build_bbox, pad_bbox
from spacelens.geometry.sanitizer import sanitize_points

__all__ = ["build_bbox", "pad_bbox", "sanitize_points"]
