"""Bounding-box arithmetic for aspect-preserving shrinks."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Dimensions:
    """Pixel size of an image."""

    width: int
    height: int

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class ResizeConstraint:
    """Maximum width and height; None or 0 leaves that axis unconstrained."""

    max_width: int | None = None
    max_height: int | None = None

    def __post_init__(self) -> None:
        for name in ("max_width", "max_height"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")

    @property
    def is_unbounded(self) -> bool:
        return not self.max_width and not self.max_height


def fit_within(original: Dimensions, constraint: ResizeConstraint) -> Dimensions:
    """Compute the shrunk size of ``original`` for ``constraint``.

    The width bound is applied first against the original size. The height
    bound is then checked against the result of that step, and when it binds
    the width is recomputed from the original aspect ratio. The width is not
    re-checked afterwards.

    Fractional sizes are truncated and clamped to at least one pixel.
    Images already inside the box come back unchanged; nothing is upscaled.
    """
    ow, oh = original.width, original.height
    nw, nh = ow, oh

    max_width = constraint.max_width
    max_height = constraint.max_height

    if max_width and nw > max_width:
        nw = max_width
        nh = max(1, oh * max_width // ow)
    if max_height and nh > max_height:
        nh = max_height
        nw = max(1, ow * max_height // oh)

    return Dimensions(nw, nh)
