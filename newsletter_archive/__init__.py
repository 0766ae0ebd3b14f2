"""
Newsletter Archive Backend

A FastAPI service that scrapes a newsletter platform's public archive,
stores every issue, serves them as JSON/RSS/embed, and sends Web Push
notifications when new issues appear.
"""

__version__ = "1.0.0"
