"""
FastAPI application layer for the SketchForge creative pipeline.

This module exposes HTTP endpoints for the five-role pipeline, the signed
image-job renderer, single-shot image generation and the board director.
"""
