"""File handles accepted by staging."""

import mimetypes
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class FileHandle(Protocol):
    """A candidate file as selected or dropped by the user."""

    @property
    def name(self) -> str: ...

    @property
    def size(self) -> int: ...

    @property
    def mime_type(self) -> str: ...

    def read(self) -> bytes: ...


class LocalFile:
    """A file on the local filesystem."""

    def __init__(self, path: Union[str, Path], mime_type: Optional[str] = None):
        self.path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(self.path.name)[0] or ""
        self._mime_type = mime_type

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @property
    def mime_type(self) -> str:
        return self._mime_type

    def read(self) -> bytes:
        return self.path.read_bytes()

    def __repr__(self) -> str:
        return f"LocalFile({str(self.path)!r})"


class InMemoryFile:
    """File contents already held in memory, e.g. from a multipart request."""

    def __init__(self, name: str, data: bytes, mime_type: str = ""):
        self._name = name
        self._data = data
        self._mime_type = mime_type

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def mime_type(self) -> str:
        return self._mime_type

    def read(self) -> bytes:
        return self._data

    def __repr__(self) -> str:
        return f"InMemoryFile({self._name!r}, size={len(self._data)})"
