"""
Composite log destination.

Fans one logical transcript out to an ordered list of destinations.

Semantics:
- exists() is True as soon as any member reports True (refuse to overwrite)
- open() fails if any member fails; members opened before the failure are
  left open and are still released by close()
- close() reaches every member regardless of earlier failures
"""

import logging
from typing import Iterable, List, Optional

from ichigeki.core.errors import ConfigError, DestinationCheckError, DestinationOpenError
from ichigeki.core.transcript import MultiWriter
from ichigeki.service.destinations.base import Destination, StreamPair

logger = logging.getLogger(__name__)


class CompositeDestination(Destination):
    def __init__(self, members: Iterable[Destination]):
        self.members: List[Destination] = list(members)

    def set_name(self, name: str) -> None:
        self.name = name
        for member in self.members:
            member.set_name(name)

    @property
    def location(self) -> str:
        return "multiple log destination[" + " ".join(m.location for m in self.members) + "]"

    def exists(self) -> bool:
        if not self.members:
            raise ConfigError("no log destination")
        for member in self.members:
            try:
                if member.exists():
                    return True
            except DestinationCheckError:
                raise
            except Exception as e:
                raise DestinationCheckError(member.location, e) from e
        return False

    def open(self) -> StreamPair:
        stdouts = []
        stderrs = []
        distinct = False
        for member in self.members:
            try:
                stdout, stderr = member.open()
            except Exception as e:
                # Members opened so far stay open; close() releases them.
                raise DestinationOpenError(member.location, e) from e
            stdouts.append(stdout)
            if stdout is stderr:
                stderrs.append(stdout)
            else:
                distinct = True
                stderrs.append(stderr)

        if distinct:
            return MultiWriter(stdouts), MultiWriter(stderrs)
        writer = MultiWriter(stdouts)
        return writer, writer

    def close(self) -> None:
        first_error: Optional[Exception] = None
        for member in self.members:
            try:
                member.close()
            except Exception as e:
                logger.error(f"close of {member.location} failed: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
