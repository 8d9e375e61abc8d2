"""Tests for the Pillow codec."""

from __future__ import annotations

import io
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from uploadshrink.errors import DecodeError, EncodeError, ResizeError
from uploadshrink.imaging.codec import (
    PillowCodec,
    format_for_filename,
    parse_resample,
    split_options,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _image_bytes(size: tuple[int, int] = (40, 30), fmt: str = "PNG", mode: str = "RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color="red" if mode != "L" else 128).save(buf, format=fmt)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Option handling
# ---------------------------------------------------------------------------


class TestOptions:
    def test_split_routes_resize_keys(self) -> None:
        resize_kwargs, save_kwargs = split_options({"resample": "bicubic", "reducing_gap": 2.0, "quality": 80})
        assert resize_kwargs == {"resample": "bicubic", "reducing_gap": 2.0}
        assert save_kwargs == {"quality": 80}

    def test_split_empty(self) -> None:
        assert split_options({}) == ({}, {})

    def test_parse_resample_by_name(self) -> None:
        assert parse_resample("lanczos") is Image.Resampling.LANCZOS
        assert parse_resample(" Nearest ") is Image.Resampling.NEAREST

    def test_parse_resample_by_member_and_int(self) -> None:
        assert parse_resample(Image.Resampling.BILINEAR) is Image.Resampling.BILINEAR
        assert parse_resample(int(Image.Resampling.BOX)) is Image.Resampling.BOX

    def test_parse_resample_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown resample"):
            parse_resample("sharpest")
        with pytest.raises(ValueError, match="Unsupported"):
            parse_resample(1.5)

    def test_format_for_filename(self) -> None:
        assert format_for_filename("photo.JPG") == "JPEG"
        assert format_for_filename("scan.png") == "PNG"
        assert format_for_filename("noext") is None
        assert format_for_filename(None) is None


# ---------------------------------------------------------------------------
# PillowCodec
# ---------------------------------------------------------------------------


class TestPillowCodec:
    def test_decode_reports_size_and_format(self) -> None:
        decoded = PillowCodec().decode(io.BytesIO(_image_bytes((40, 30), "PNG")))
        assert (decoded.width, decoded.height) == (40, 30)
        assert decoded.format == "PNG"

    @pytest.mark.parametrize("data", [b"", b"not an image at all", _image_bytes((400, 300), "PNG")[:80]])
    def test_decode_failures_raise_decode_error(self, data: bytes) -> None:
        with pytest.raises(DecodeError):
            PillowCodec().decode(io.BytesIO(data))

    def test_decode_enforces_pixel_limit(self) -> None:
        codec = PillowCodec(max_image_pixels=100)
        with pytest.raises(DecodeError, match="limit"):
            codec.decode(io.BytesIO(_image_bytes((20, 20))))

    def test_resize_keeps_format(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_image_bytes((40, 30), "JPEG")))
        resized = codec.resize(decoded, 20, 15, {"resample": "bilinear", "quality": 70})
        assert (resized.width, resized.height) == (20, 15)
        assert resized.format == "JPEG"

    def test_resize_bad_option_raises_resize_error(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_image_bytes()))
        with pytest.raises(ResizeError):
            codec.resize(decoded, 10, 10, {"resample": "no-such-filter"})

    def test_encode_uses_source_format(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_image_bytes(fmt="JPEG")))
        out = io.BytesIO()
        codec.encode(decoded, out, "upload.png", {"quality": 60})
        out.seek(0)
        assert Image.open(out).format == "JPEG"

    def test_encode_falls_back_to_filename_then_png(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_image_bytes()))
        resized = codec.resize(decoded, 5, 5, {})
        unformatted = type(resized)(image=resized.image, format=None)

        out = io.BytesIO()
        codec.encode(unformatted, out, "thumb.gif", {})
        out.seek(0)
        assert Image.open(out).format == "GIF"

        out = io.BytesIO()
        codec.encode(unformatted, out, None, {})
        out.seek(0)
        assert Image.open(out).format == "PNG"

    def test_encode_jpeg_drops_alpha(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_image_bytes(mode="RGBA")))
        rgba_as_jpeg = type(decoded)(image=decoded.image, format="JPEG")
        out = io.BytesIO()
        codec.encode(rgba_as_jpeg, out, None, {})
        out.seek(0)
        assert Image.open(out).mode == "RGB"

    def test_encode_write_failure_raises_encode_error(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_image_bytes()))
        closed = io.BytesIO()
        closed.close()
        with pytest.raises(EncodeError):
            codec.encode(decoded, closed, None, {})


# ---------------------------------------------------------------------------
# Pixel limit
# ---------------------------------------------------------------------------


class TestPixelLimit:
    def test_limit_checked_before_pixels_are_loaded(self) -> None:
        header_only = MagicMock(width=800, height=600)
        with patch("uploadshrink.imaging.codec.Image.open", return_value=header_only):
            with pytest.raises(DecodeError, match="limit is 1000"):
                PillowCodec(max_image_pixels=1000).decode(io.BytesIO(b"ignored"))
        header_only.load.assert_not_called()

    def test_within_limit_is_loaded(self) -> None:
        decoded = PillowCodec(max_image_pixels=1200).decode(io.BytesIO(_image_bytes((40, 30))))
        assert decoded.image.getpixel((0, 0)) == (255, 0, 0)

    def test_none_lifts_pillow_global_limit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # 1200 pixels is more than twice this global limit, so Pillow alone would refuse it.
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        decoded = PillowCodec(max_image_pixels=None).decode(io.BytesIO(_image_bytes((40, 30))))

        assert (decoded.width, decoded.height) == (40, 30)
        assert Image.MAX_IMAGE_PIXELS == 100

    def test_own_limit_may_exceed_pillow_global_limit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        decoded = PillowCodec(max_image_pixels=5000).decode(io.BytesIO(_image_bytes((40, 30))))
        assert (decoded.width, decoded.height) == (40, 30)

    def test_global_limit_restored_after_failed_open(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(DecodeError):
            PillowCodec().decode(io.BytesIO(b"not an image"))
        assert Image.MAX_IMAGE_PIXELS == 100


# ---------------------------------------------------------------------------
# Animated images
# ---------------------------------------------------------------------------


def _animated_gif(size: tuple[int, int] = (200, 100)) -> bytes:
    frames = [Image.new("RGB", size, color=color) for color in ("red", "green", "blue")]
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    return buf.getvalue()


class TestAnimatedImages:
    def test_resize_scales_every_frame(self) -> None:
        codec = PillowCodec()
        decoded = codec.decode(io.BytesIO(_animated_gif()))

        resized = codec.resize(decoded, 100, 50, {})

        assert len(resized.extra_frames) == 2
        assert all(frame.size == (100, 50) for frame in (resized.image, *resized.extra_frames))

    def test_encode_keeps_animation(self) -> None:
        codec = PillowCodec()
        resized = codec.resize(codec.decode(io.BytesIO(_animated_gif())), 100, 50, {})
        out = io.BytesIO()

        codec.encode(resized, out, "spinner.gif", {})

        out.seek(0)
        with Image.open(out) as img:
            assert img.format == "GIF"
            assert img.n_frames == 3
            assert img.size == (100, 50)
            assert img.info.get("loop") == 0

    def test_still_image_has_no_extra_frames(self) -> None:
        codec = PillowCodec()
        resized = codec.resize(codec.decode(io.BytesIO(_image_bytes())), 20, 15, {})
        assert resized.extra_frames == ()
