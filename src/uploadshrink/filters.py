"""Upload filters built on ``BoundedResizer``.

A filter is a one-argument callable that takes an uploaded file handle and
returns the handle a form layer should keep for that field::

    shrink = image_filter(max_width=800, max_height=600, quality=85)
    upload = shrink(upload)

Any keyword other than the two bounds is forwarded to the codec untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from uploadshrink.config import get_settings
from uploadshrink.imaging.artifacts import SpooledArtifactFactory
from uploadshrink.imaging.codec import PillowCodec
from uploadshrink.imaging.geometry import ResizeConstraint
from uploadshrink.imaging.resizer import BoundedResizer

if TYPE_CHECKING:
    from uploadshrink.config import Settings
    from uploadshrink.imaging.artifacts import TempArtifactFactory
    from uploadshrink.imaging.codec import Codec

UploadFilter = Callable[[Any], Any]


def image_filter(
    max_width: int | None = None,
    max_height: int | None = None,
    *,
    codec: Codec | None = None,
    artifact_factory: TempArtifactFactory | None = None,
    **options: Any,
) -> UploadFilter:
    """Create a filter that shrinks uploads to fit ``max_width`` x ``max_height``.

    Raises:
        ValueError: If either bound is negative.
    """
    constraint = ResizeConstraint(max_width, max_height)
    resizer = BoundedResizer(codec=codec, artifact_factory=artifact_factory)

    def shrink_image(upload: Any) -> Any:
        return resizer.resize(upload, constraint.max_width, constraint.max_height, options)

    return shrink_image


def image_filter_from_settings(settings: Settings | None = None) -> UploadFilter:
    """Create a filter from ``Settings`` (UPLOADSHRINK_* environment variables)."""
    if settings is None:
        settings = get_settings()
    return image_filter(
        settings.max_width,
        settings.max_height,
        codec=PillowCodec(max_image_pixels=settings.max_image_pixels),
        artifact_factory=SpooledArtifactFactory(
            spool_max_size=settings.spool_max_size,
            temp_dir=settings.temp_dir,
        ),
        **settings.encode_options,
    )
