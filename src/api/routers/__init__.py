"""
API route handlers for different endpoint groups.

Each router handles one area (health, pipeline, image jobs, images)
and leaves error rendering to the application's PipelineError handler.
"""
