"""Client for the content management service.

The service exposes setlists with their songs, single content records and a
proxy endpoint that streams stored files.
"""

from .content_client import HttpContentService

__all__ = [
    "HttpContentService",
]
