class GalleryError(Exception):
    """Base class for errors raised by the gallery widget."""


class FragmentError(GalleryError):
    """An upload response did not describe a gallery item."""


class TransportError(GalleryError):
    """A request to the gallery endpoints failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
