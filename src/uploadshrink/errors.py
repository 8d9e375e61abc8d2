"""Exceptions raised by the imaging collaborators.

None of these escape ``BoundedResizer.resize``; they mark which step of the
shrink failed so it can be logged before falling back to the original upload.
"""

from __future__ import annotations


class UploadShrinkError(Exception):
    """Base class for uploadshrink errors."""


class CodecError(UploadShrinkError):
    """The image codec could not complete a step."""


class DecodeError(CodecError):
    """Bytes could not be decoded as an image."""


class ResizeError(CodecError):
    """A decoded image could not be resized."""


class EncodeError(CodecError):
    """A resized image could not be written to its destination."""


class ArtifactError(UploadShrinkError):
    """A temporary destination could not be allocated."""
