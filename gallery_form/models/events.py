"""Typed events flowing from the upload engine into the gallery.

The engine reports everything through one of these dataclasses and the
coordinator consumes them in a single dispatch function, so tests can feed
synthetic events without a real engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Tuple, Union

from gallery_form.models.gallery import FileDescriptor


class UploadErrorCode(IntEnum):
    GENERIC_ERROR = -100
    HTTP_ERROR = -200
    IO_ERROR = -300
    SECURITY_ERROR = -400
    INIT_ERROR = -500
    FILE_SIZE_ERROR = -600
    FILE_EXTENSION_ERROR = -601
    IMAGE_FORMAT_ERROR = -700
    IMAGE_MEMORY_ERROR = -701
    IMAGE_DIMENSIONS_ERROR = -702


class ErrorKind(str, Enum):
    # rejected before transfer, never held an upload slot
    VALIDATION = "validation"
    # the transfer itself failed
    TRANSPORT = "transport"
    ENGINE = "engine"


_VALIDATION_CODES = (UploadErrorCode.FILE_EXTENSION_ERROR, UploadErrorCode.FILE_SIZE_ERROR)
_TRANSPORT_CODES = (UploadErrorCode.HTTP_ERROR, UploadErrorCode.IO_ERROR)


def classify_error(code: int) -> ErrorKind:
    if code in _VALIDATION_CODES:
        return ErrorKind.VALIDATION
    if code in _TRANSPORT_CODES:
        return ErrorKind.TRANSPORT
    return ErrorKind.ENGINE


@dataclass(frozen=True)
class EngineInit:
    runtime: str = ""


@dataclass(frozen=True)
class FilesAdded:
    files: Tuple[FileDescriptor, ...]


@dataclass(frozen=True)
class UploadProgress:
    file_id: str
    percent: int


@dataclass(frozen=True)
class FileUploaded:
    file_id: str
    response: str


@dataclass(frozen=True)
class UploadError:
    code: int
    message: str
    file: Optional[FileDescriptor] = None

    @property
    def kind(self) -> ErrorKind:
        return classify_error(self.code)

    @property
    def file_id(self) -> Optional[str]:
        return self.file.id if self.file is not None else None


@dataclass(frozen=True)
class UploadsSettled:
    """Emitted by the upload session when its last outstanding file resolves."""

    completed: int = 0
    failed: int = 0


UploadEvent = Union[
    EngineInit, FilesAdded, UploadProgress, FileUploaded, UploadError, UploadsSettled
]
