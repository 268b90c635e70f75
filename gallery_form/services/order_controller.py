import logging
from typing import List, Optional

from gallery_form.core.exceptions import FragmentError
from gallery_form.core.settings import GalleryConfig
from gallery_form.services.dom import Element
from gallery_form.services.drag_list import DRAGEND, DragEvent, DragListGroup, HandleResolver
from gallery_form.services.fragments import find_item_image, parse_image_id
from gallery_form.services.transport import Transport

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")


class GalleryOrderController:
    """Drag-to-reorder for the gallery list.

    Reordering happens on the page straight away. With `sync_order` enabled
    the full new order is also posted to the transport, without waiting for
    or reconciling the response.
    """

    def __init__(
        self,
        config: GalleryConfig,
        transport: Optional[Transport] = None,
        resolve_drag_handle: Optional[HandleResolver] = None,
    ):
        self.config = config
        self.transport = transport
        self.resolve_drag_handle = resolve_drag_handle or self._thumbnail_handle
        self.group: Optional[DragListGroup] = None
        self.container: Optional[Element] = None
        self.builds = 0

    def _thumbnail_handle(self, item: Element) -> Optional[Element]:
        # Dragging by the thumbnail keeps the caption textarea usable
        return find_item_image(item, self.config.css)

    def initialize(self, container: Element) -> DragListGroup:
        """(Re)bind dragging over the current children of `container`."""
        if self.group is not None:
            self.group.dispose()
        group = DragListGroup(
            container,
            resolve_drag_handle=self.resolve_drag_handle,
            hysteresis=self.config.drag_hysteresis,
            handle_hover_class=self.config.css.draggable,
            dragger_class=self.config.css.dragging,
        )
        group.listen(DRAGEND, self._on_drag_end)
        group.init()
        self.group = group
        self.container = container
        self.builds += 1
        logger.debug("drag surface bound", extra={"items": len(group.items)})
        return group

    def dispose(self) -> None:
        if self.group is not None:
            self.group.dispose()
            self.group = None

    def item_ids(self) -> List[str]:
        """Ids of the items in their current visual order."""
        if self.container is None:
            return []
        ids = []
        for li in self.container.children:
            image = find_item_image(li, self.config.css) or li.find("img")
            if image is None:
                continue
            try:
                ids.append(parse_image_id(image))
            except FragmentError:
                logger.warning("gallery item without an image id", extra={"node": repr(li)})
        return ids

    def drag(self, item: Element, to_index: int, distance: Optional[int] = None) -> bool:
        """Drag `item` by its handle and drop it at `to_index`."""
        if self.group is None:
            return False
        handle = self.resolve_drag_handle(item) or item
        return self.group.drag(handle, to_index, distance)

    def _on_drag_end(self, event: DragEvent) -> None:
        if event.from_index == event.to_index:
            return
        if not self.config.sync_order or self.transport is None:
            return
        ids = self.item_ids()
        self.transport.reorder_images(ids)
        audit.info("gallery.reorder.sent", extra={"order": ids})
