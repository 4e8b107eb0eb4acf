"""
Streaming remote log destination.

Bytes written by the guard go into a bounded Conduit; one background
worker thread drains it through a streaming S3 upload. The full
transcript is never held in memory.

Upload failure handling:
- the worker records the error and closes the conduit's read side, which
  wakes any blocked writer
- the next write() raises UploadError once and clears the saved error
- if no write observed it, close() raises it
"""

import logging
import threading
from typing import Optional

from ichigeki.core.errors import UploadError
from ichigeki.service.destinations.base import DEFAULT_POSTFIX, Destination, StreamPair
from ichigeki.service.destinations.conduit import DEFAULT_CAPACITY, Conduit, ConduitClosedError
from ichigeki.service.destinations.object_store import ObjectNotFound, S3ObjectStore

logger = logging.getLogger(__name__)


class _UploadWriter:
    """Producer side handed to the guard as both stdout and stderr."""

    def __init__(self, destination: "StreamingRemoteDestination", conduit: Conduit):
        self._destination = destination
        self._conduit = conduit

    def write(self, data: bytes) -> int:
        self._destination._raise_pending_error()
        try:
            return self._conduit.write(data)
        except ConduitClosedError:
            self._destination._raise_pending_error()
            raise

    def flush(self) -> None:
        pass


class StreamingRemoteDestination(Destination):
    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        postfix: Optional[str] = None,
        store: Optional[S3ObjectStore] = None,
        capacity: int = DEFAULT_CAPACITY,
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.prefix = prefix or ""
        self.postfix = postfix or DEFAULT_POSTFIX
        self.store = store or S3ObjectStore.from_env(endpoint_url)
        self._owns_store = store is None
        self.capacity = capacity

        self._conduit: Optional[Conduit] = None
        self._worker: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None
        self._error_lock = threading.Lock()

    @property
    def key(self) -> str:
        return f"{self.prefix}{self.name}{self.postfix}".lstrip("/")

    @property
    def location(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def exists(self) -> bool:
        try:
            self.store.head_object(self.bucket, self.key)
        except ObjectNotFound:
            return False
        return True

    def open(self) -> StreamPair:
        self._conduit = Conduit(self.capacity)
        self._worker = threading.Thread(
            target=self._upload,
            args=(self._conduit,),
            name=f"ichigeki-upload-{self.key}",
            daemon=True,
        )
        self._worker.start()
        logger.debug(f"upload worker started for {self.location}")
        writer = _UploadWriter(self, self._conduit)
        return writer, writer

    def _upload(self, conduit: Conduit) -> None:
        try:
            self.store.put_object(self.bucket, self.key, conduit)
        except Exception as e:
            logger.error(f"upload to {self.location} failed: {e}")
            with self._error_lock:
                self._error = e
        finally:
            conduit.close_reader()

    def _take_error(self) -> Optional[BaseException]:
        with self._error_lock:
            error, self._error = self._error, None
        return error

    def _raise_pending_error(self) -> None:
        error = self._take_error()
        if error is not None:
            raise UploadError(self.location, error) from error

    def close(self) -> None:
        if self._worker is not None:
            conduit, worker = self._conduit, self._worker
            self._conduit, self._worker = None, None
            conduit.close()
            worker.join()
        if self._owns_store:
            self.store.close()
        self._raise_pending_error()
