"""JSON serialisation helpers.

:class:`JsonSerializer` encodes values (Pydantic models included) to JSON
bytes, decodes them back into a requested type, and persists them as
zip-compressed archives.
"""

from loopauth.serialization.json_serializer import ARCHIVE_ENTRY, JsonSerializer

__all__ = ["ARCHIVE_ENTRY", "JsonSerializer"]
