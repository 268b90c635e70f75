import logging
from typing import Callable, Dict, List, Optional, Sequence

from gallery_form.core.settings import GalleryConfig
from gallery_form.models.events import (
    EngineInit,
    ErrorKind,
    FilesAdded,
    FileUploaded,
    UploadError,
    UploadErrorCode,
    UploadEvent,
    UploadProgress,
    UploadsSettled,
)
from gallery_form.models.gallery import FileDescriptor, InFlightUpload, UploadStatus
from gallery_form.services.dom import Element, create
from gallery_form.services.upload_engine import UploadEngine

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")


class UploadSession:
    """Bridges an upload engine into per-file progress rows and a slot count.

    Every event from the engine is applied here first (rows, statuses, the
    outstanding count) and then forwarded to `listener`. When the last
    outstanding file reaches a terminal state an `UploadsSettled` event
    follows. All per-file state is keyed by the engine's file id, so events
    for different files may interleave freely.
    """

    def __init__(
        self,
        engine: UploadEngine,
        files_list: Element,
        config: GalleryConfig,
        listener: Optional[Callable[[UploadEvent], None]] = None,
    ):
        self.engine = engine
        self.files_list = files_list
        self.config = config
        self.listener = listener
        self.uploads: Dict[str, InFlightUpload] = {}
        self._completed = 0
        self._failed = 0
        engine.bind(self.handle)

    @property
    def outstanding(self) -> int:
        return sum(1 for u in self.uploads.values() if not u.is_terminal)

    def init(self) -> None:
        self.engine.init()

    def add_files(self, files: Sequence[FileDescriptor]) -> None:
        self.engine.add_files(files)

    def start(self) -> None:
        audit.info("gallery.upload.start", extra={"outstanding": self.outstanding})
        self.engine.start()

    def upload(self, file_id: str) -> Optional[InFlightUpload]:
        return self.uploads.get(file_id)

    def messages(self) -> List[str]:
        return [row.text_content() for row in self.files_list.children]

    # event handling
    def handle(self, event: UploadEvent) -> None:
        if isinstance(event, EngineInit):
            self.files_list.remove_children()
            self._forward(event)
        elif isinstance(event, FilesAdded):
            self._on_files_added(event)
        elif isinstance(event, UploadProgress):
            self._on_progress(event)
        elif isinstance(event, FileUploaded):
            self._on_uploaded(event)
        elif isinstance(event, UploadError):
            self._on_error(event)
        else:
            logger.warning("unexpected upload event", extra={"event": repr(event)})

    def _forward(self, event: UploadEvent) -> None:
        if self.listener is not None:
            self.listener(event)

    def _on_files_added(self, event: FilesAdded) -> None:
        added = []
        for f in event.files:
            if f.id in self.uploads:
                logger.debug("file already registered", extra={"file_id": f.id})
                continue
            row = create(
                "p",
                {"id": f.id},
                "",
                create("span", None, f"{f.name} - "),
                create("span", {"class": self.config.css.percent}, "0%"),
            )
            self.files_list.append_child(row)
            self.uploads[f.id] = InFlightUpload(file_id=f.id, name=f.name, row=row)
            added.append(f)
        audit.info(
            "gallery.upload.added",
            extra={"files": [f.name for f in added], "outstanding": self.outstanding},
        )
        self._forward(FilesAdded(tuple(added)))
        if added and self.config.auto_start_upload:
            self.start()

    def _set_row_text(self, upload: InFlightUpload, text: str) -> bool:
        row = upload.row
        if row.parent is not self.files_list:
            return False
        percent = row.find(cls=self.config.css.percent)
        if percent is None:
            return False
        percent.text = text
        return True

    def _on_progress(self, event: UploadProgress) -> None:
        upload = self.uploads.get(event.file_id)
        if upload is None or upload.is_terminal:
            return
        upload.status = UploadStatus.UPLOADING
        upload.percent = max(upload.percent, max(0, min(100, int(event.percent))))
        # The row may be gone already; that is not an error
        self._set_row_text(upload, f"{upload.percent}%")
        self._forward(event)

    def _on_uploaded(self, event: FileUploaded) -> None:
        upload = self.uploads.get(event.file_id)
        if upload is None or upload.is_terminal:
            logger.debug("completion for unknown file", extra={"file_id": event.file_id})
            return
        self._forward(event)
        # the listener may have rejected the response via mark_failed
        if not upload.is_terminal:
            upload.status = UploadStatus.DONE
            upload.percent = 100
            self._set_row_text(upload, "100%")
            self._completed += 1
        self._maybe_settle()

    def _on_error(self, event: UploadError) -> None:
        kind = event.kind
        if kind is ErrorKind.VALIDATION:
            name = event.file.name if event.file is not None else ""
            if event.code == UploadErrorCode.FILE_SIZE_ERROR:
                reason = "File is too large."
            else:
                reason = f"File must end in: {self.config.extensions_label}"
            text = f"Not adding: {name}. {reason}"
            upload = self.uploads.get(event.file_id) if event.file_id else None
            if upload is None:
                self._append_message(text)
                self._forward(event)
                return
            # a late rejection of a queued file still has to release its slot
            if not upload.is_terminal:
                self.mark_failed(upload.file_id, text)
                self._forward(event)
                self._maybe_settle()
            return

        if kind is ErrorKind.TRANSPORT:
            text = self.config.upload_error_text
        else:
            text = f"Error: {int(event.code)} - {event.message}"

        upload = self.uploads.get(event.file_id) if event.file_id else None
        if upload is None:
            # no slot was reserved for a file-less error, so none is released
            if event.file_id is None:
                self._append_message(text)
            self._forward(event)
            return
        if upload.is_terminal:
            return
        self.mark_failed(upload.file_id, text)
        logger.warning(
            "gallery.upload.failed",
            extra={"file_id": upload.file_id, "code": int(event.code), "error": event.message},
        )
        self._forward(event)
        self._maybe_settle()

    def mark_failed(self, file_id: str, reason: str) -> None:
        upload = self.uploads.get(file_id)
        if upload is None or upload.is_terminal:
            return
        upload.status = UploadStatus.FAILED
        upload.reason = reason
        self._set_row_text(upload, reason)
        self._failed += 1

    def _append_message(self, text: str) -> None:
        self.files_list.append_child(create("p", None, text))

    def _maybe_settle(self) -> None:
        if self.outstanding:
            return
        settled = UploadsSettled(completed=self._completed, failed=self._failed)
        # Rows stay on the page; the bookkeeping for this batch is done
        self.uploads.clear()
        self._completed = 0
        self._failed = 0
        audit.info(
            "gallery.upload.settled",
            extra={"completed": settled.completed, "failed": settled.failed},
        )
        self._forward(settled)
