"""Exception taxonomy.

* :class:`ConfigurationError` aborts the whole run before any map is touched.
* :class:`MapReadError` and :class:`IOWriteError` abort a single map.
* :class:`TextureResolutionError` is recoverable: the affected tile or texture
  is skipped and the export continues.
"""


class TerrainExportError(Exception):
    """Base class for all errors raised by the exporter."""


class ConfigurationError(TerrainExportError):
    """A required setting or path is missing or invalid."""


class MapReadError(TerrainExportError):
    """The parsed map document is malformed or unreadable."""


class TextureResolutionError(TerrainExportError):
    """A tile value or declared texture could not be mapped to an image."""


class IOWriteError(TerrainExportError):
    """An output artifact could not be written."""
