"""
FastAPI dependencies for request processing.

Dependencies hand the services built at startup to the endpoints, and give
tests a single place to swap them out.
"""
