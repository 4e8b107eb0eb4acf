from .settings import FileSettings, S3Settings, Settings

__all__ = ["FileSettings", "S3Settings", "Settings"]
