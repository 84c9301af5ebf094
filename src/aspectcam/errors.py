"""Error taxonomy for the capture pipelines.

Every failure raised by the capture and export seams derives from
:class:`CaptureError`, which is itself a ``RuntimeError`` so callers that
only care about "the device failed" can keep catching ``RuntimeError``.
"""


class CaptureError(RuntimeError):
    """Base class for capture pipeline failures."""


class SourceUnavailable(CaptureError):
    """No active frame source (never established or already torn down)."""


class SurfaceUnavailable(CaptureError):
    """A drawing surface could not be allocated."""


class PlaybackUnavailable(SurfaceUnavailable):
    """A recorded take could not be opened or its metadata never arrived."""


class EncodeFailure(CaptureError):
    """A recorder could not start, or finished with zero bytes."""


class ExportUnsupported(CaptureError):
    """The native save path is not usable for this artifact."""
