"""Image codec: decode, resize and encode uploads with Pillow.

The resizer only talks to the ``Codec`` protocol; ``PillowCodec`` is the
concrete implementation. Encoder options arrive as an opaque mapping and are
split here between ``Image.resize`` and ``Image.save``.
"""

from __future__ import annotations

import logging
import os
import threading
import warnings
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Any, Protocol

from PIL import Image, ImageSequence

from uploadshrink.errors import DecodeError, EncodeError, ResizeError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "PNG"
DEFAULT_RESAMPLE = Image.Resampling.LANCZOS

# Option keys consumed by Image.resize; everything else goes to Image.save.
RESIZE_OPTION_KEYS = frozenset({"resample", "reducing_gap"})

_NO_ALPHA_FORMATS = frozenset({"JPEG", "MPO"})

# Guards the temporary change to Image.MAX_IMAGE_PIXELS in PillowCodec._open.
_bomb_check_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodedImage:
    """A decoded image plus the format it was read from.

    For animated sources ``image`` is the first frame and ``extra_frames``
    holds the rest, in order.
    """

    image: Image.Image
    format: str | None
    extra_frames: tuple[Image.Image, ...] = ()

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


class Codec(Protocol):
    """Protocol for the image codec used by the resizer."""

    def decode(self, stream: IO[bytes]) -> DecodedImage:
        """Decode an image from a binary stream.

        Raises:
            DecodeError: If the bytes are not a readable image.
        """
        ...

    def resize(self, image: DecodedImage, width: int, height: int, options: Mapping[str, Any]) -> DecodedImage:
        """Return ``image`` scaled to ``width`` x ``height``.

        Raises:
            ResizeError: If the codec cannot resize the image.
        """
        ...

    def encode(
        self,
        image: DecodedImage,
        destination: IO[bytes],
        filename_hint: str | None,
        options: Mapping[str, Any],
    ) -> None:
        """Write ``image`` to ``destination``.

        Raises:
            EncodeError: If the image cannot be written.
        """
        ...


# ---------------------------------------------------------------------------
# Pillow implementation
# ---------------------------------------------------------------------------


def split_options(options: Mapping[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split an options bag into (resize kwargs, save kwargs)."""
    resize_kwargs: dict[str, Any] = {}
    save_kwargs: dict[str, Any] = {}
    for key, value in options.items():
        if key in RESIZE_OPTION_KEYS:
            resize_kwargs[key] = value
        else:
            save_kwargs[key] = value
    return resize_kwargs, save_kwargs


def parse_resample(value: object) -> Image.Resampling:
    """Accept a Resampling member, its int value, or a name like ``"lanczos"``."""
    if isinstance(value, Image.Resampling):
        return value
    if isinstance(value, str):
        try:
            return Image.Resampling[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown resample filter: {value!r}") from None
    if isinstance(value, int):
        return Image.Resampling(value)
    raise ValueError(f"Unsupported resample value: {value!r}")


def format_for_filename(filename: str | None) -> str | None:
    """Return the Pillow format registered for the filename's extension."""
    if not filename:
        return None
    ext = os.path.splitext(filename)[1].lower()
    if not ext:
        return None
    return Image.registered_extensions().get(ext)


class PillowCodec:
    """Decodes, resizes and encodes images using Pillow.

    ``max_image_pixels`` is the only size limit applied: Pillow's global
    decompression-bomb check is lifted while the header is read, and the
    limit is enforced before any pixel data is loaded.
    """

    def __init__(self, max_image_pixels: int | None = None) -> None:
        self._max_image_pixels = max_image_pixels

    def decode(self, stream: IO[bytes]) -> DecodedImage:
        try:
            image = self._open(stream)
        except Exception as exc:
            raise DecodeError(f"Could not decode image: {exc}") from exc

        pixels = image.width * image.height
        if self._max_image_pixels is not None and pixels > self._max_image_pixels:
            raise DecodeError(f"Image has {pixels} pixels, limit is {self._max_image_pixels}")

        try:
            image.load()
        except Exception as exc:
            raise DecodeError(f"Could not decode image: {exc}") from exc

        return DecodedImage(image=image, format=image.format)

    def resize(self, image: DecodedImage, width: int, height: int, options: Mapping[str, Any]) -> DecodedImage:
        resize_kwargs, _ = split_options(options)
        try:
            resample = parse_resample(resize_kwargs.pop("resample", DEFAULT_RESAMPLE))
            if getattr(image.image, "n_frames", 1) > 1:
                frames = [
                    frame.copy().resize((width, height), resample=resample, **resize_kwargs)
                    for frame in ImageSequence.Iterator(image.image)
                ]
                return DecodedImage(image=frames[0], format=image.format, extra_frames=tuple(frames[1:]))
            resized = image.image.resize((width, height), resample=resample, **resize_kwargs)
        except (OSError, ValueError, TypeError, EOFError) as exc:
            raise ResizeError(f"Could not resize to {width}x{height}: {exc}") from exc
        return DecodedImage(image=resized, format=image.format)

    def encode(
        self,
        image: DecodedImage,
        destination: IO[bytes],
        filename_hint: str | None,
        options: Mapping[str, Any],
    ) -> None:
        _, save_kwargs = split_options(options)
        fmt = image.format or format_for_filename(filename_hint) or DEFAULT_FORMAT

        pil_image = image.image
        if fmt in _NO_ALPHA_FORMATS and pil_image.mode not in ("RGB", "L", "CMYK"):
            pil_image = pil_image.convert("RGB")

        if image.extra_frames and fmt in Image.SAVE_ALL:
            save_kwargs.setdefault("save_all", True)
            save_kwargs.setdefault("append_images", list(image.extra_frames))
            if "loop" in pil_image.info:
                save_kwargs.setdefault("loop", pil_image.info["loop"])

        try:
            pil_image.save(destination, format=fmt, **save_kwargs)
        except (OSError, ValueError, TypeError, KeyError) as exc:
            raise EncodeError(f"Could not encode {fmt} image: {exc}") from exc
        logger.debug("Encoded %s image as %s", filename_hint or "<unnamed>", fmt)

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _open(stream: IO[bytes]) -> Image.Image:
        # Image.open only parses the header; the size check in decode replaces Pillow's own.
        with _bomb_check_lock, warnings.catch_warnings():
            warnings.simplefilter("ignore", Image.DecompressionBombWarning)
            saved = Image.MAX_IMAGE_PIXELS
            Image.MAX_IMAGE_PIXELS = None
            try:
                return Image.open(stream)
            finally:
                Image.MAX_IMAGE_PIXELS = saved
