"""
Local file log destination.
"""

import io
import logging
import os
from typing import BinaryIO, Optional

from ichigeki.service.destinations.base import DEFAULT_POSTFIX, Destination, StreamPair

logger = logging.getLogger(__name__)


class LocalDestination(Destination):
    """Transcript written to ``<directory>/<name><postfix>``.

    stdout and stderr share one buffered writer.
    """

    def __init__(self, directory: Optional[str] = None, postfix: Optional[str] = None):
        self.directory = directory
        self.postfix = postfix or DEFAULT_POSTFIX
        self._fp: Optional[BinaryIO] = None
        self._writer: Optional[io.BufferedWriter] = None

    @property
    def location(self) -> str:
        directory = self.directory or os.getcwd()
        return os.path.join(directory, self.name + self.postfix)

    def exists(self) -> bool:
        try:
            os.stat(self.location)
        except OSError:
            return False
        return True

    def open(self) -> StreamPair:
        self._fp = open(self.location, "wb", buffering=0)
        self._writer = io.BufferedWriter(self._fp)
        return self._writer, self._writer

    def close(self) -> None:
        if self._writer is None:
            return
        writer, self._writer, self._fp = self._writer, None, None
        try:
            writer.flush()
        except OSError as e:
            logger.error(f"flush of {self.location} failed: {e}")
        try:
            writer.close()
        except OSError as e:
            logger.error(f"close of {self.location} failed: {e}")
