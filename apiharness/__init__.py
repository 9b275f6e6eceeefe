"""OpenAPI-driven API test harness."""

__version__ = "1.0.0"
