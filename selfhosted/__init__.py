"""Self-hosted ML Translation Service.

This package provides a standalone FastAPI service exposing the English
<-> Romance translation models over HTTP.
"""

__version__ = "0.1.0"
