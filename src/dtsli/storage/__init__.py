"""
Resource stores for sli.yaml, dynatrace.conf.yaml and generated documents.

- FileResourceStore: directory tree on local disk
- InMemoryResourceStore: process-local dictionary
"""

from dtsli.storage.base import ResourceLevel, ResourceStore
from dtsli.storage.local import FileResourceStore
from dtsli.storage.memory import InMemoryResourceStore

__all__ = [
    "FileResourceStore",
    "InMemoryResourceStore",
    "ResourceLevel",
    "ResourceStore",
]
