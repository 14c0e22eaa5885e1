"""
Backend package for the CreateKit API.

This package provides a FastAPI application that gates AI content generation
behind a usage quota, forwards requests to text and image providers and
stores the results as creations with a publish/like feed.
"""
