"""
Blackout Breaker - recover text hidden under black redaction boxes.

This package detects solid black rectangles in rendered PDF pages, merges
fragmented detections, and recovers the text fragments that still sit
underneath each box in the page's text layer.
"""

__version__ = "0.1.0"
