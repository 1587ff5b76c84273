"""
FastAPI backend for storing, sharing and cooking from recipes.
"""
