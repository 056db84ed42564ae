"""
Shared utilities: logging, Redis resilience, FastAPI exception handlers, datetime
"""
