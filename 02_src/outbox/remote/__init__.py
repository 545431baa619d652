"""Remote writer module."""

from .writer import IRemoteWriter, RestRemoteWriter

__all__ = ["IRemoteWriter", "RestRemoteWriter"]
