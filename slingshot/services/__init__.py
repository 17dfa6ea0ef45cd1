"""Services for slingshot module."""
from .api_client import HTTPTransport
from .store import FileRecordStore

__all__ = [
    "HTTPTransport",
    "FileRecordStore",
]
