"""Bounded resize of uploaded images.

``BoundedResizer.resize`` never raises: if decoding, resizing or encoding
fails for any reason the original handle is rewound and handed back, so a
broken or exotic upload passes through untouched.
"""

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING, Any

from uploadshrink.errors import ArtifactError, CodecError
from uploadshrink.imaging.artifacts import SpooledArtifactFactory
from uploadshrink.imaging.codec import PillowCodec
from uploadshrink.imaging.geometry import Dimensions, ResizeConstraint, fit_within

if TYPE_CHECKING:
    from collections.abc import Mapping

    from uploadshrink.imaging.artifacts import TempArtifact, TempArtifactFactory
    from uploadshrink.imaging.codec import Codec, DecodedImage

logger = logging.getLogger(__name__)


def _is_handle(value: object) -> bool:
    return all(callable(getattr(value, attr, None)) for attr in ("read", "seek"))


def _filename_of(handle: object) -> str | None:
    for attr in ("filename", "name"):
        value = getattr(handle, attr, None)
        if isinstance(value, str) and value:
            return value
    return None


def _rewind(handle: IO[bytes]) -> None:
    try:
        handle.seek(0)
    except Exception:
        logger.warning("Could not rewind %r", handle, exc_info=True)


class BoundedResizer:
    """Shrinks uploads so they fit inside a maximum width and height."""

    def __init__(
        self,
        codec: Codec | None = None,
        artifact_factory: TempArtifactFactory | None = None,
    ) -> None:
        self._codec: Codec = codec if codec is not None else PillowCodec()
        self._artifacts: TempArtifactFactory = (
            artifact_factory if artifact_factory is not None else SpooledArtifactFactory()
        )

    # -- Public API ---------------------------------------------------------

    def resize(
        self,
        source: Any,
        max_width: int | None = None,
        max_height: int | None = None,
        encode_options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Return a shrunk copy of ``source``, or ``source`` itself.

        ``source`` is returned unchanged when it is None or not a file-like
        object, when neither bound is set, and when any step fails. In every
        case a file-like ``source`` is left at position 0.
        """
        if source is None or not _is_handle(source):
            return source

        try:
            constraint = ResizeConstraint(max_width, max_height)
            options = dict(encode_options or {})
            if constraint.is_unbounded:
                return source
            result = self._shrink(source, constraint, options)
        except Exception:
            logger.warning("Unexpected failure shrinking %s; keeping original", _filename_of(source), exc_info=True)
            result = None
        finally:
            _rewind(source)

        return source if result is None else result

    # -- Internal -----------------------------------------------------------

    def _shrink(
        self,
        source: IO[bytes],
        constraint: ResizeConstraint,
        options: dict[str, Any],
    ) -> TempArtifact | None:
        filename = _filename_of(source)
        source.seek(0)

        decoded = self._decode(source, filename)
        if decoded is None:
            return None

        original = Dimensions(decoded.width, decoded.height)
        if not original.is_valid:
            logger.warning("Image %s has no usable size (%dx%d)", filename, original.width, original.height)
            return None

        target = fit_within(original, constraint)

        resized = self._resize(decoded, target, options, filename)
        if resized is None:
            return None

        artifact = self._encode(resized, filename, options)
        if artifact is None:
            return None

        artifact.seek(0)
        logger.debug(
            "Resized %s from %dx%d to %dx%d",
            filename,
            original.width,
            original.height,
            target.width,
            target.height,
        )
        return artifact

    def _decode(self, source: IO[bytes], filename: str | None) -> DecodedImage | None:
        try:
            return self._codec.decode(source)
        except CodecError as exc:
            logger.warning("Upload %s is not a readable image: %s", filename, exc)
        except Exception:
            logger.warning("Decoding %s failed", filename, exc_info=True)
        return None

    def _resize(
        self,
        decoded: DecodedImage,
        target: Dimensions,
        options: Mapping[str, Any],
        filename: str | None,
    ) -> DecodedImage | None:
        try:
            return self._codec.resize(decoded, target.width, target.height, options)
        except CodecError as exc:
            logger.warning("Resizing %s failed: %s", filename, exc)
        except Exception:
            logger.warning("Resizing %s failed", filename, exc_info=True)
        return None

    def _encode(
        self,
        resized: DecodedImage,
        filename: str | None,
        options: Mapping[str, Any],
    ) -> TempArtifact | None:
        try:
            artifact = self._artifacts.create(filename)
        except ArtifactError as exc:
            logger.warning("No destination for %s: %s", filename, exc)
            return None
        except Exception:
            logger.warning("Allocating destination for %s failed", filename, exc_info=True)
            return None

        try:
            self._codec.encode(resized, artifact, filename, options)
        except CodecError as exc:
            logger.warning("Encoding %s failed: %s", filename, exc)
        except Exception:
            logger.warning("Encoding %s failed", filename, exc_info=True)
        else:
            return artifact

        artifact.close()
        return None
