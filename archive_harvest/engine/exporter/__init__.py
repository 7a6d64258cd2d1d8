"""Exporter SPI and implementations."""

from .base import BaseExporter
from .file_exporter import FileExporter
from .stream_exporter import StreamExporter

__all__ = ["BaseExporter", "FileExporter", "StreamExporter"]
