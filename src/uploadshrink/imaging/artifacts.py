"""Temporary destinations for shrunk uploads."""

from __future__ import annotations

import tempfile
from typing import IO, TYPE_CHECKING, Protocol

from uploadshrink.errors import ArtifactError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType


class TempArtifact:
    """A seekable temporary file carrying the upload's client filename.

    Behaves like a binary file object; ``str()`` gives the filename so it can
    stand in for the upload it replaces.
    """

    def __init__(self, file: IO[bytes], filename: str | None = None) -> None:
        self.file = file
        self.filename = filename

    def read(self, size: int = -1) -> bytes:
        return self.file.read(size)

    def write(self, data: bytes) -> int:
        return self.file.write(data)

    def seek(self, offset: int, whence: int = 0) -> int:
        return self.file.seek(offset, whence)

    def tell(self) -> int:
        return self.file.tell()

    def flush(self) -> None:
        self.file.flush()

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def close(self) -> None:
        self.file.close()

    @property
    def closed(self) -> bool:
        return self.file.closed

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.file)

    def __enter__(self) -> TempArtifact:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __str__(self) -> str:
        return self.filename or ""

    def __repr__(self) -> str:
        return f"TempArtifact(filename={self.filename!r})"


class TempArtifactFactory(Protocol):
    """Protocol for allocating fresh, seekable destinations."""

    def create(self, filename: str | None = None) -> TempArtifact:
        """Return a new empty artifact positioned at 0.

        Raises:
            ArtifactError: If no backing store could be allocated.
        """
        ...


class SpooledArtifactFactory:
    """Creates artifacts backed by ``tempfile.SpooledTemporaryFile``.

    Data stays in memory up to ``spool_max_size`` bytes, then rolls over to a
    real temporary file in ``temp_dir``.
    """

    def __init__(self, spool_max_size: int = 1_048_576, temp_dir: str | None = None) -> None:
        self._spool_max_size = spool_max_size
        self._temp_dir = temp_dir

    def create(self, filename: str | None = None) -> TempArtifact:
        try:
            file = tempfile.SpooledTemporaryFile(
                max_size=self._spool_max_size,
                mode="w+b",
                prefix="uploadshrink-",
                dir=self._temp_dir,
            )
        except OSError as exc:
            raise ArtifactError(f"Could not allocate temporary file: {exc}") from exc
        return TempArtifact(file, filename)
