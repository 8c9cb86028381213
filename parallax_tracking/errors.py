class EyeDetectionError(Exception):
    """Raised when eye detection fails or yields unusable eye point-sets."""


class SurfaceNotReadyError(Exception):
    """Raised when the capture surface reports zero width or height."""


class CaptureUnavailableError(Exception):
    """Raised when the capture device cannot be opened."""
