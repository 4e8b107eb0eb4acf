"""
Log destinations - where execution transcripts are recorded.
"""

from .base import Destination
from .composite import CompositeDestination
from .conduit import Conduit, ConduitClosedError
from .local import LocalDestination
from .object_store import ObjectNotFound, ObjectStoreError, S3ObjectStore
from .remote import StreamingRemoteDestination

__all__ = [
    "Destination",
    "CompositeDestination",
    "Conduit",
    "ConduitClosedError",
    "LocalDestination",
    "ObjectNotFound",
    "ObjectStoreError",
    "S3ObjectStore",
    "StreamingRemoteDestination",
]
