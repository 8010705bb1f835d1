"""
Produce Monitor - Detection Module

This module handles produce detection in video frames.
"""

from .base import Detector
from .yolo import YoloDetector

__all__ = ['Detector', 'YoloDetector']
