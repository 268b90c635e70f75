"""The gallery coordinator: uploads, ordering and captions behind one form.

The coordinator owns the page regions of the widget and is the only
component that enables or disables the submit control. It is driven purely
by re-entrant callbacks (upload engine events, clicks, drags); each callback
finishes its mutations before returning, so any event can follow any other.

Submission rules:

* the image count must lie within ``[min_images, max_images]``;
* with ``block_submit_while_uploading`` no upload may be outstanding;
* no rich-text field bound through ``bind_word_limits`` may be over its limit;
* every registered caption must be non-empty. Captions are only checked
  when the user tries to submit, never while they are typing.

Deletes and reorders are optimistic: the page changes first and the request
is sent without waiting for an answer.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from gallery_form.core.exceptions import FragmentError
from gallery_form.core.settings import GalleryConfig
from gallery_form.models.events import (
    EngineInit,
    FilesAdded,
    FileUploaded,
    UploadError,
    UploadEvent,
    UploadProgress,
    UploadsSettled,
)
from gallery_form.models.gallery import (
    BlockReason,
    CoordinatorState,
    FileDescriptor,
    GalleryItem,
    SubmitDecision,
)
from gallery_form.services.caption_registry import CaptionRegistry
from gallery_form.services.dom import DomEvent, Element
from gallery_form.services.fragments import build_item, item_from_node, parse_image_id
from gallery_form.services.order_controller import GalleryOrderController
from gallery_form.services.rich_text import RichTextField, WordLimitBinding, bind_editors
from gallery_form.services.transport import Transport
from gallery_form.services.upload_engine import UploadEngine
from gallery_form.services.upload_session import UploadSession

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")


def _require(page: Element, element_id: str) -> Element:
    el = page.find_by_id(element_id)
    if el is None:
        raise LookupError(f"page has no element with id {element_id!r}")
    return el


class GalleryCoordinator:
    def __init__(
        self,
        page: Element,
        engine: UploadEngine,
        transport: Transport,
        config: GalleryConfig,
        order_controller: Optional[GalleryOrderController] = None,
        captions: Optional[CaptionRegistry] = None,
    ):
        self.config = config
        self.transport = transport
        self.page = page
        css = config.css

        self.images = _require(page, config.images_id)
        self.files_list = _require(page, config.files_list_id)
        self.images_description = _require(page, config.images_description_id)
        self.num_images_error = _require(page, config.num_images_error_id)
        self.submit_button = _require(page, config.submit_id)
        self.upload_link = page.find_by_id(config.upload_id)
        self.upload_container = self.upload_link.parent if self.upload_link else None

        self.captions = captions or CaptionRegistry(css.error, config.caption_required_text)
        self.order = order_controller or GalleryOrderController(config, transport)
        self.session = UploadSession(engine, self.files_list, config, listener=self.dispatch)
        self._items: Dict[str, GalleryItem] = {}
        self._word_limits: List[WordLimitBinding] = []

        if self.upload_link is not None:
            self.upload_link.add_listener("click", self.on_upload_click)
        self.images.add_listener("click", self.on_images_click)
        self.submit_button.add_listener("click", self.on_submit_click)

        self._adopt_rendered_items()
        if self.have_images:
            self.images_description.show()
        else:
            self.images_description.hide()
        self.refresh_eligibility()
        self.order.initialize(self.images)
        self.session.init()

    def _adopt_rendered_items(self) -> None:
        for node in list(self.images.children):
            try:
                item = item_from_node(node, self.config.css)
            except FragmentError:
                logger.warning("skipping unrecognised gallery entry", extra={"node": repr(node)})
                continue
            if item.id in self._items:
                # keep the first occurrence; ids must stay unique
                node.remove()
                continue
            self._track(item)

    # state
    @property
    def state(self) -> CoordinatorState:
        return CoordinatorState.UPLOADING if self.session.outstanding else CoordinatorState.IDLE

    @property
    def outstanding(self) -> int:
        return self.session.outstanding

    @property
    def item_count(self) -> int:
        return len(self.images.children)

    @property
    def have_images(self) -> bool:
        return self.item_count > 0

    def ordered_ids(self) -> List[str]:
        return self.order.item_ids()

    def item(self, item_id: str) -> Optional[GalleryItem]:
        return self._items.get(item_id)

    # uploads
    def add_files(self, files: Sequence[FileDescriptor]) -> None:
        self.session.add_files(files)

    def confirm_upload(self) -> None:
        if self.upload_container is not None:
            self.upload_container.hide()
        self.session.start()

    def on_upload_click(self, event: DomEvent) -> None:
        event.prevent_default()
        self.confirm_upload()

    def dispatch(self, event: UploadEvent) -> None:
        """Single entry point for everything the upload session reports."""
        if isinstance(event, FileUploaded):
            self._insert_uploaded(event)
        elif isinstance(event, UploadsSettled):
            self.settle()
        elif isinstance(event, FilesAdded):
            if event.files and not self.config.auto_start_upload and self.upload_container:
                self.upload_container.show()
            self.refresh_eligibility()
        elif isinstance(event, UploadError):
            audit.info(
                "gallery.upload.error",
                extra={
                    "code": int(event.code),
                    "kind": event.kind.value,
                    "file_id": event.file_id,
                },
            )
        elif isinstance(event, (UploadProgress, EngineInit)):
            pass
        else:
            logger.warning("unhandled gallery event", extra={"event": repr(event)})

    def _insert_uploaded(self, event: FileUploaded) -> None:
        try:
            item = build_item(event.response, self.config.css)
        except FragmentError as exc:
            logger.warning(
                "gallery.upload.bad_response", extra={"file_id": event.file_id, "error": str(exc)}
            )
            self.session.mark_failed(event.file_id, self.config.invalid_response_text)
            return
        if item.id in self._items:
            logger.warning("gallery.item.duplicate", extra={"item_id": item.id})
            return
        self.images.append_child(item.node)
        self._track(item)
        audit.info("gallery.item.added", extra={"item_id": item.id, "count": self.item_count})
        # The drag surface is rebuilt once the batch settles

    def _track(self, item: GalleryItem) -> None:
        self._items[item.id] = item
        if item.caption_field is not None:
            self.captions.register(item.id, item.caption_field)

    def settle(self) -> None:
        """Rebuild the drag surface and recompute eligibility after a batch."""
        self.order.initialize(self.images)
        if self.have_images:
            self.images_description.show()
        self.refresh_eligibility()

    # deletion
    def on_images_click(self, event: DomEvent) -> None:
        target = event.target
        if not target.has_class(self.config.css.image_delete):
            return
        event.prevent_default()
        # The delete link can sit inside decorative wrappers
        container = target.closest(self.config.css.image_container)
        if container is None:
            return
        image = container.first_element_child()
        if image is None:
            return
        try:
            item_id = parse_image_id(image)
        except FragmentError:
            logger.warning("delete clicked on an item without an id")
            return
        self.delete_item(item_id)

    def delete_item(self, item_id: str) -> bool:
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        item.node.remove()
        self.captions.unregister(item_id)
        self.transport.delete_image(item_id)
        audit.info("gallery.item.deleted", extra={"item_id": item_id, "count": self.item_count})
        if not self.have_images:
            self.images_description.hide()
        if self.state is CoordinatorState.IDLE:
            self.order.initialize(self.images)
        self.refresh_eligibility()
        return True

    # word limits
    def bind_word_limits(
        self, field_factory: Callable[[Element], RichTextField]
    ) -> List[WordLimitBinding]:
        """Bind every rich-text editor on the page and gate submission on its limit."""
        bindings = bind_editors(
            self.page,
            field_factory,
            self.config.max_words_error_text,
            css_editor=self.config.css.editor,
            error_class=self.config.css.error,
            on_validity_change=self._on_word_limit_change,
        )
        self._word_limits.extend(bindings)
        return bindings

    def watch_word_limit(self, binding: WordLimitBinding) -> None:
        binding.on_validity_change = self._on_word_limit_change
        self._word_limits.append(binding)
        self.refresh_eligibility()

    def _on_word_limit_change(self, binding: WordLimitBinding) -> None:
        audit.info(
            "gallery.word_limit.changed",
            extra={"field": binding.data_field.get_attribute("name"), "over": binding.over_limit},
        )
        self.refresh_eligibility()

    # submission
    def _blocking_reason(self) -> Optional[BlockReason]:
        if not self.config.within_bounds(self.item_count):
            return BlockReason.IMAGE_COUNT
        if self.config.block_submit_while_uploading and self.outstanding:
            return BlockReason.UPLOADING
        if any(b.over_limit for b in self._word_limits):
            return BlockReason.WORD_LIMIT
        return None

    def refresh_eligibility(self) -> bool:
        """Update the count message and the submit control; True if enabled."""
        if self.config.within_bounds(self.item_count):
            self.num_images_error.hide()
        else:
            self.num_images_error.show()
        enabled = self._blocking_reason() is None
        self.submit_button.set_disabled(not enabled)
        return enabled

    def is_submittable(self) -> bool:
        """Whether a submit would go through, without touching the page."""
        return self._blocking_reason() is None and self.captions.all_filled()

    def attempt_submit(self) -> SubmitDecision:
        reason = self._blocking_reason()
        self.refresh_eligibility()
        if reason is not None:
            audit.info("gallery.submit.blocked", extra={"reason": reason.value})
            return SubmitDecision(allowed=False, reason=reason)
        result = self.captions.validate_all(order=self.ordered_ids())
        if not result.ok:
            if result.first_invalid is not None:
                result.first_invalid.focus()
            audit.info(
                "gallery.submit.blocked",
                extra={"reason": BlockReason.CAPTIONS.value, "item_ids": result.invalid_ids},
            )
            return SubmitDecision(
                allowed=False, reason=BlockReason.CAPTIONS, focus=result.first_invalid
            )
        audit.info("gallery.submit.allowed", extra={"count": self.item_count})
        return SubmitDecision(allowed=True)

    def on_submit_click(self, event: DomEvent) -> None:
        if not self.attempt_submit().allowed:
            event.prevent_default()
