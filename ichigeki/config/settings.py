"""
Ichigeki - Configuration

Settings come from a YAML file merged with command line flags (flags win).

Default config file: ~/.config/ichigeki/default.yaml

    confirm_dialog: false
    default_name_template: "{{ name }}-{{ arg 1 }}-{{ args | hash }}"
    file:
      dir: /var/log/ichigeki
      log_file_postfix: .log
    s3:
      bucket: example-com
      object_prefix: ichigeki/
      endpoint_url: http://localhost:9000   # S3-compatible store, optional

Environment Variables:
  ICHIGEKI_CONFIG      - alternative config file path
  ICHIGEKI_S3_ENDPOINT - S3-compatible endpoint URL
  AWS_DEFAULT_REGION   - region of the S3 bucket
"""

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from ichigeki.core.errors import ConfigError
from ichigeki.service.destinations.base import Destination
from ichigeki.service.destinations.composite import CompositeDestination
from ichigeki.service.destinations.local import LocalDestination
from ichigeki.service.destinations.remote import StreamingRemoteDestination

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".config") / "ichigeki" / "default.yaml"


@dataclass
class FileSettings:
    dir: str = ""
    log_file_postfix: str = ""


@dataclass
class S3Settings:
    bucket: str = ""
    object_prefix: str = ""
    endpoint_url: str = ""


@dataclass
class Settings:
    """Resolved configuration for one invocation."""

    name: str = ""
    confirm_dialog: Optional[bool] = None
    default_name_template: str = ""
    exec_date: Optional[date] = None
    file: Optional[FileSettings] = None
    s3: Optional[S3Settings] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        if not isinstance(data, dict):
            raise ConfigError("config root must be a mapping")
        settings = cls(
            confirm_dialog=data.get("confirm_dialog"),
            default_name_template=data.get("default_name_template") or "",
        )
        if data.get("file") is not None:
            file_data = data["file"]
            if not isinstance(file_data, dict):
                raise ConfigError("file section must be a mapping")
            settings.file = FileSettings(
                dir=str(file_data.get("dir") or ""),
                log_file_postfix=str(file_data.get("log_file_postfix") or ""),
            )
        if data.get("s3") is not None:
            s3_data = data["s3"]
            if not isinstance(s3_data, dict):
                raise ConfigError("s3 section must be a mapping")
            settings.s3 = S3Settings(
                bucket=str(s3_data.get("bucket") or ""),
                object_prefix=str(s3_data.get("object_prefix") or ""),
                endpoint_url=str(s3_data.get("endpoint_url") or ""),
            )
        return settings

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"config load failed: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def load_default(cls, path: Optional[str] = None) -> "Settings":
        """Load the given file, $ICHIGEKI_CONFIG, or the default path if present."""
        if path:
            return cls.from_file(Path(path))
        env_path = os.getenv("ICHIGEKI_CONFIG")
        if env_path:
            return cls.from_file(Path(env_path))
        default_path = Path.home() / DEFAULT_CONFIG_PATH
        if default_path.exists():
            logger.debug(f"loading default config {default_path}")
            return cls.from_file(default_path)
        return cls()

    def apply_flags(
        self,
        dir: str = "",
        name: str = "",
        s3_url_prefix: str = "",
        exec_date: str = "",
        no_confirm_dialog: bool = False,
        default_name_template: str = "",
    ) -> "Settings":
        """Overlay command line flags on the loaded file settings."""
        self.name = name
        if no_confirm_dialog:
            self.confirm_dialog = False
        if default_name_template:
            self.default_name_template = default_name_template

        if s3_url_prefix:
            url = urlparse(s3_url_prefix)
            if url.scheme != "s3":
                raise ConfigError("s3-url-prefix is not s3 url format")
            if self.s3 is None:
                self.s3 = S3Settings()
            self.s3.bucket = url.netloc
            self.s3.object_prefix = url.path

        if dir:
            if self.file is None:
                self.file = FileSettings()
            self.file.dir = os.path.abspath(dir)

        if exec_date:
            try:
                self.exec_date = datetime.strptime(exec_date, "%Y-%m-%d").date()
            except ValueError as e:
                raise ConfigError(f"exec date parse failed: {e}") from e
        return self

    def build_destination(self) -> Destination:
        """S3 first, then local file; default to the working directory."""
        destinations: List[Destination] = []
        if self.s3 is not None and self.s3.bucket:
            destinations.append(
                StreamingRemoteDestination(
                    bucket=self.s3.bucket,
                    prefix=self.s3.object_prefix,
                    endpoint_url=self.s3.endpoint_url or None,
                )
            )
        if self.file is not None and self.file.dir:
            destinations.append(
                LocalDestination(directory=self.file.dir, postfix=self.file.log_file_postfix)
            )
        if not destinations:
            destinations.append(LocalDestination(directory=os.getcwd()))

        if len(destinations) == 1:
            return destinations[0]
        return CompositeDestination(destinations)
