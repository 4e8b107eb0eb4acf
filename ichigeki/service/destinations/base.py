"""
Log destination contract.

A destination is a named sink for one execution transcript. The guard
binds its name with set_name() before anything else, asks exists() to
enforce at-most-once execution, then open() to obtain the stream pair and
finally close() to release it.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Tuple

StreamPair = Tuple[BinaryIO, BinaryIO]

DEFAULT_POSTFIX = ".log"


class Destination(ABC):
    """Abstract log destination."""

    name: str = ""

    def set_name(self, name: str) -> None:
        self.name = name

    @property
    @abstractmethod
    def location(self) -> str:
        """Resolved location (path or URI); stable once the name is set."""
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Return True when a transcript already exists for the bound name."""
        pass

    @abstractmethod
    def open(self) -> StreamPair:
        """Allocate and return (stdout, stderr); both may be the same object."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release resources acquired by open(). Safe to call when never opened."""
        pass

    def __str__(self) -> str:
        return self.location
