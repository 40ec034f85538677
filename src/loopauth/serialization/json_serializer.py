"""JSON serialisation with optional zip-compressed persistence.

:class:`JsonSerializer` turns Pydantic models and plain JSON-compatible
values into UTF-8 JSON bytes and back. Typed decoding goes through a
:class:`pydantic.TypeAdapter`, so any type Pydantic can validate
(models, dataclasses, ``list[int]``, ...) can be requested.

The compressed variants store the JSON document as the single entry of a
zip archive. Archives are written atomically (temp file + rename) and off
the event loop.
"""

from __future__ import annotations

import asyncio
import json
import zipfile
from pathlib import Path
from typing import IO, Any, Callable, Optional, TypeVar, Union, overload

from pydantic import BaseModel, PydanticSchemaGenerationError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from loopauth.config import atomic_write
from loopauth.exceptions import ConstructionError, SerializationError

T = TypeVar("T")

StreamFactory = Callable[[], IO[bytes]]
Payload = Union[bytes, bytearray, str, IO[bytes]]

ARCHIVE_ENTRY = "data.json"
"""Name of the JSON entry inside a compressed archive."""


class JsonSerializer:
    """Serialise values to JSON bytes and read them back.

    Args:
        stream_factory: Zero-argument callable returning an empty, writable
            and seekable binary stream (``io.BytesIO`` is the usual choice).
            Used as the scratch buffer for every encode.

    Raises:
        ConstructionError: If *stream_factory* is ``None``.

    Example::

        serializer = JsonSerializer(io.BytesIO)
        data = serializer.serialize(result)
        restored = serializer.deserialize(data, AuthorizationResult)
    """

    def __init__(self, stream_factory: Optional[StreamFactory]) -> None:
        if stream_factory is None:
            raise ConstructionError("stream_factory")
        self._stream_factory = stream_factory

    def serialize(self, value: Any) -> bytes:
        """Encode *value* as UTF-8 JSON."""
        with self._stream_factory() as stream:
            stream.write(self._encode(value))
            stream.seek(0)
            return stream.read()

    @overload
    def deserialize(self, data: Payload, model: None = None) -> Any: ...

    @overload
    def deserialize(self, data: Payload, model: type[T]) -> T: ...

    def deserialize(self, data: Payload, model: Optional[type[Any]] = None) -> Any:
        """Decode JSON from bytes, text, or a readable binary stream.

        Args:
            data: The JSON document.
            model: Type to validate into. When ``None`` the plain decoded
                JSON (``dict``, ``list``, ...) is returned.

        Raises:
            SerializationError: If *data* is not valid JSON or does not
                validate against *model*.
        """
        raw = self._read(data)
        try:
            if model is None:
                return json.loads(raw)
            return TypeAdapter(model).validate_json(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            raise SerializationError(f"Cannot decode JSON payload: {exc}") from exc

    async def serialize_compressed(self, value: Any, path: str | Path) -> None:
        """Write *value* as a zip archive holding one JSON entry.

        Missing parent directories are created. The archive replaces any
        existing file at *path* atomically.
        """
        payload = self.serialize(value)
        await asyncio.to_thread(self._write_archive, Path(path), payload)

    @overload
    def deserialize_compressed(self, path: str | Path, model: None = None) -> Any: ...

    @overload
    def deserialize_compressed(self, path: str | Path, model: type[T]) -> T: ...

    def deserialize_compressed(
        self, path: str | Path, model: Optional[type[Any]] = None
    ) -> Any:
        """Read an archive written by :meth:`serialize_compressed`.

        Raises:
            SerializationError: If the file is missing, is not a zip
                archive, or its entry cannot be decoded.
        """
        path = Path(path)
        try:
            with zipfile.ZipFile(path) as archive:
                payload = archive.read(ARCHIVE_ENTRY)
        except FileNotFoundError as exc:
            raise SerializationError(f"Archive not found: {path}") from exc
        except (zipfile.BadZipFile, KeyError) as exc:
            raise SerializationError(f"Invalid archive {path}: {exc}") from exc
        return self.deserialize(payload, model)

    def _write_archive(self, path: Path, payload: bytes) -> None:
        with self._stream_factory() as stream:
            with zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(ARCHIVE_ENTRY, payload)
            stream.seek(0)
            atomic_write(path, stream.read())

    @staticmethod
    def _encode(value: Any) -> bytes:
        if isinstance(value, BaseModel):
            return value.model_dump_json().encode("utf-8")
        try:
            return TypeAdapter(type(value)).dump_json(value)
        except (PydanticSchemaGenerationError, PydanticSerializationError) as exc:
            raise SerializationError(
                f"Cannot serialise value of type {type(value).__name__}: {exc}"
            ) from exc

    @staticmethod
    def _read(data: Payload) -> bytes:
        if isinstance(data, str):
            return data.encode("utf-8")
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)
        return data.read()
