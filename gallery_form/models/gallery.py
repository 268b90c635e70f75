from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from gallery_form.services.dom import Element


def _file_id() -> str:
    return "f_" + uuid.uuid4().hex[:12]


@dataclass
class FileDescriptor:
    """A file picked by the user; `id` is assigned by the upload engine."""

    name: str
    size: int = 0
    data: Optional[bytes] = None
    id: str = field(default_factory=_file_id)

    @property
    def extension(self) -> str:
        _, dot, ext = self.name.rpartition(".")
        return ext.lower() if dot else ""


class UploadStatus(str, Enum):
    QUEUED = "queued"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


@dataclass
class InFlightUpload:
    file_id: str
    name: str
    row: Element
    status: UploadStatus = UploadStatus.QUEUED
    percent: int = 0
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (UploadStatus.DONE, UploadStatus.FAILED)


@dataclass
class GalleryItem:
    """One server-confirmed image. Its position is its place in the images list."""

    id: str
    node: Element
    caption_field: Optional[Element] = None


@dataclass
class ValidationResult:
    ok: bool
    first_invalid: Optional[Element] = None
    invalid_ids: List[str] = field(default_factory=list)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"


class BlockReason(str, Enum):
    IMAGE_COUNT = "image_count"
    UPLOADING = "uploading"
    WORD_LIMIT = "word_limit"
    CAPTIONS = "captions"


@dataclass
class SubmitDecision:
    allowed: bool
    reason: Optional[BlockReason] = None
    focus: Optional[Element] = None
