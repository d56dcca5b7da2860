"""
snapfit - Photo Store API for the SnapFit body-composition journal

An HTTP service that keeps progress photos and their measurements:
- WebP thumbnail and original renditions stored in Google Cloud Storage
- Per-photo metadata (body fat, weight) in Redis with a rolling retention window
- Cursor pagination with lookahead prefetch for the photo timeline
- Body-fat estimation through a hosted vision model
"""

__version__ = "0.1.0"
__author__ = "snapfit"
__description__ = "Photo Store API for the SnapFit body-composition journal"
