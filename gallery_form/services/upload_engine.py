"""Multi-file upload engines.

An engine queues picked files, transfers them when `start()` is called and
reports everything through `UploadEvent`s to the handlers bound with `bind`.
`HttpUploadEngine` does real chunked transfers with httpx;
`ScriptedUploadEngine` only relays the events it is given.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import httpx
from pydantic import BaseModel

from gallery_form.core.settings import GalleryConfig
from gallery_form.models.events import (
    EngineInit,
    FilesAdded,
    FileUploaded,
    UploadError,
    UploadErrorCode,
    UploadEvent,
    UploadProgress,
)
from gallery_form.models.gallery import FileDescriptor

logger = logging.getLogger(__name__)

EventHandler = Callable[[UploadEvent], None]

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_MULTIPLIERS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}


def parse_size(value: Any) -> int:
    """Parse sizes like ``"10mb"`` or ``1048576`` into bytes."""
    if isinstance(value, int):
        return value
    m = _SIZE_RE.match(str(value))
    if not m:
        raise ValueError(f"unrecognised size: {value!r}")
    number, unit = m.groups()
    return int(float(number) * _MULTIPLIERS[(unit or "b").lower()])


class FileFilter(BaseModel):
    title: str
    extensions: str

    def extension_list(self) -> Tuple[str, ...]:
        return tuple(e.strip().lower() for e in self.extensions.split(",") if e.strip())


class EngineOptions(BaseModel):
    url: str = "/upload"
    runtimes: Tuple[str, ...] = ("gears", "html5", "flash", "silverlight", "browserplus")
    browse_button: Optional[str] = None
    container: Optional[str] = None
    max_file_size: int = 10 * 1024**2
    chunk_size: int = 1024**2
    filters: List[FileFilter] = []

    @property
    def allowed_extensions(self) -> Tuple[str, ...]:
        exts: List[str] = []
        for f in self.filters:
            exts.extend(f.extension_list())
        return tuple(exts)


def build_engine_options(
    config: GalleryConfig,
    url: str = "/upload",
    overrides: Optional[Dict[str, Any]] = None,
    max_file_size: Any = "10mb",
    chunk_size: Any = "1mb",
    runtimes: Any = "gears,html5,flash,silverlight,browserplus",
) -> EngineOptions:
    """Merge caller overrides over the default engine options."""
    if isinstance(runtimes, str):
        runtimes = tuple(r.strip() for r in runtimes.split(",") if r.strip())
    options: Dict[str, Any] = {
        "url": url,
        "runtimes": runtimes,
        "container": config.upload_id,
        "max_file_size": max_file_size,
        "chunk_size": chunk_size,
        "filters": [{"title": "Image files", "extensions": config.extensions_label}],
    }
    options.update(overrides or {})
    for key in ("max_file_size", "chunk_size"):
        options[key] = parse_size(options[key])
    return EngineOptions(**options)


def engine_options_from_settings(settings, config: GalleryConfig) -> EngineOptions:
    return build_engine_options(
        config,
        url=settings.UPLOAD_URL,
        max_file_size=settings.MAX_FILE_SIZE,
        chunk_size=settings.CHUNK_SIZE,
        runtimes=settings.UPLOAD_RUNTIMES,
    )


class UploadEngine(Protocol):
    def bind(self, handler: EventHandler) -> None: ...

    def init(self) -> None: ...

    def add_files(self, files: Sequence[FileDescriptor]) -> None: ...

    def start(self) -> None: ...


class BaseUploadEngine:
    def __init__(self):
        self._handlers: List[EventHandler] = []

    def bind(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def emit(self, event: UploadEvent) -> None:
        for handler in list(self._handlers):
            handler(event)

    def init(self) -> None:
        self.emit(EngineInit())


class ScriptedUploadEngine(BaseUploadEngine):
    """Engine that transfers nothing; events are pushed in with `emit`."""

    def __init__(self):
        super().__init__()
        self.started = 0
        self.added: List[FileDescriptor] = []

    def add_files(self, files: Sequence[FileDescriptor]) -> None:
        files = tuple(files)
        self.added.extend(files)
        if files:
            self.emit(FilesAdded(files))

    def start(self) -> None:
        self.started += 1


class HttpUploadEngine(BaseUploadEngine):
    """Chunked multipart uploads over an `httpx.Client`.

    Files failing the extension or size filter are reported as validation
    errors and never queued. Each file is posted in `chunk_size` pieces with
    ``name``, ``chunk``, ``chunks`` and ``upload_id`` form fields; the body
    of the final chunk's response is the server-rendered gallery item.
    """

    def __init__(self, client: httpx.Client, options: EngineOptions):
        super().__init__()
        self.client = client
        self.options = options
        self.queue: List[FileDescriptor] = []
        self.runtime = options.runtimes[0] if options.runtimes else "html5"

    def init(self) -> None:
        self.emit(EngineInit(runtime=self.runtime))

    def _rejection(self, f: FileDescriptor) -> Optional[UploadError]:
        allowed = self.options.allowed_extensions
        if allowed and f.extension not in allowed:
            return UploadError(UploadErrorCode.FILE_EXTENSION_ERROR, "File extension error.", f)
        size = f.size or len(f.data or b"")
        if self.options.max_file_size and size > self.options.max_file_size:
            return UploadError(UploadErrorCode.FILE_SIZE_ERROR, "File size error.", f)
        return None

    def add_files(self, files: Sequence[FileDescriptor]) -> None:
        accepted = []
        for f in files:
            error = self._rejection(f)
            if error is not None:
                self.emit(error)
                continue
            accepted.append(f)
        if accepted:
            self.queue.extend(accepted)
            self.emit(FilesAdded(tuple(accepted)))

    def start(self) -> None:
        while self.queue:
            self._upload(self.queue.pop(0))

    def _upload(self, f: FileDescriptor) -> None:
        data = f.data or b""
        chunk_size = max(1, self.options.chunk_size)
        chunks = max(1, math.ceil(len(data) / chunk_size))
        response = None
        for index in range(chunks):
            piece = data[index * chunk_size : (index + 1) * chunk_size]
            try:
                response = self.client.post(
                    self.options.url,
                    data={
                        "name": f.name,
                        "chunk": str(index),
                        "chunks": str(chunks),
                        "upload_id": f.id,
                    },
                    files={"file": (f.name, piece, "application/octet-stream")},
                )
            except httpx.HTTPError as exc:
                logger.warning("upload transfer failed", extra={"file": f.name, "error": str(exc)})
                self.emit(UploadError(UploadErrorCode.HTTP_ERROR, f"HTTP Error. {exc}", f))
                return
            if response.status_code >= 400:
                self.emit(
                    UploadError(
                        UploadErrorCode.HTTP_ERROR, f"HTTP Error. {response.status_code}", f
                    )
                )
                return
            self.emit(UploadProgress(f.id, int((index + 1) * 100 / chunks)))
        self.emit(FileUploaded(f.id, response.text if response is not None else ""))
