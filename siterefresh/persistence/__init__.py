"""
Persistence Side Channels

- BlobStorage / FileBlobStorage: run artifacts (screenshots)
- PromptLogger: fire-and-forget prompt/response records
"""

from .prompt_log import PromptLogEntry, PromptLogger
from .storage import BlobStorage, FileBlobStorage

__all__ = [
    "PromptLogEntry",
    "PromptLogger",
    "BlobStorage",
    "FileBlobStorage",
]
