"""Direct-manipulation reordering over the children of a list element.

Like the browser widgets it stands in for, a `DragListGroup` snapshots the
container's children when `init()` runs. Items added afterwards are not
draggable until the group is disposed and a new one is initialized.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from gallery_form.services.dom import DomEvent, Element

logger = logging.getLogger(__name__)

HandleResolver = Callable[[Element], Optional[Element]]

DRAGSTART = "dragstart"
DRAGEND = "dragend"


@dataclass
class DragEvent:
    type: str
    item: Element
    from_index: int
    to_index: int
    ghost: Optional[Element] = None


class DragListGroup:
    def __init__(
        self,
        container: Element,
        resolve_drag_handle: Optional[HandleResolver] = None,
        hysteresis: int = 0,
        handle_hover_class: Optional[str] = None,
        dragger_class: Optional[str] = None,
    ):
        self.container = container
        self.resolve_drag_handle = resolve_drag_handle
        self.hysteresis = hysteresis
        self.handle_hover_class = handle_hover_class
        self.dragger_class = dragger_class
        self._listeners: Dict[str, List[Callable[[DragEvent], None]]] = {}
        self._handles: Dict[int, Element] = {}
        self._items: Dict[int, Element] = {}
        self._pressed: Optional[Element] = None
        self.ghost: Optional[Element] = None
        self.initialized = False
        self.disposed = False

    def listen(self, event_type: str, fn: Callable[[DragEvent], None]) -> None:
        self._listeners.setdefault(event_type, []).append(fn)

    def _fire(self, event: DragEvent) -> None:
        for fn in list(self._listeners.get(event.type, [])):
            fn(event)

    def _handle_for(self, item: Element) -> Element:
        if self.resolve_drag_handle is not None:
            handle = self.resolve_drag_handle(item)
            if handle is not None:
                return handle
        return item

    def init(self) -> None:
        if self.disposed:
            raise RuntimeError("cannot init a disposed DragListGroup")
        if self.initialized:
            return
        for item in list(self.container.children):
            handle = self._handle_for(item)
            handle.add_listener("mousedown", self._on_press)
            if self.handle_hover_class:
                handle.add_class(self.handle_hover_class)
            self._handles[id(handle)] = handle
            self._items[id(handle)] = item
        self.initialized = True

    def dispose(self) -> None:
        if self.disposed:
            return
        for handle in self._handles.values():
            handle.remove_listener("mousedown", self._on_press)
            if self.handle_hover_class:
                handle.remove_class(self.handle_hover_class)
        self._handles.clear()
        self._items.clear()
        self._listeners.clear()
        self._pressed = None
        self.ghost = None
        self.disposed = True

    @property
    def items(self) -> List[Element]:
        return list(self._items.values())

    def is_draggable(self, item: Element) -> bool:
        return any(bound is item for bound in self._items.values())

    def _on_press(self, event: DomEvent) -> None:
        for handle_key, handle in self._handles.items():
            if handle.contains(event.target):
                self._pressed = self._items[handle_key]
                return

    def drag(self, handle: Element, to_index: int, distance: Optional[int] = None) -> bool:
        """Press `handle`, move it `distance` pixels and drop the item at `to_index`.

        Returns False when nothing moved: the press was not on a bound handle,
        the item left the list, or the movement stayed under the hysteresis.
        """
        self._pressed = None
        handle.dispatch(DomEvent("mousedown", handle))
        item, self._pressed = self._pressed, None
        if item is None or item.parent is not self.container:
            return False
        if distance is not None and distance < self.hysteresis:
            return False

        from_index = item.index_in_parent()
        # Only the handle is rendered while dragging, not the whole row
        ghost = self._handle_for(item).clone()
        if self.dragger_class:
            ghost.add_class(self.dragger_class)
        self.ghost = ghost
        self._fire(DragEvent(DRAGSTART, item, from_index, from_index, ghost))

        self.container.insert_child_at(item, to_index)
        new_index = item.index_in_parent()
        self.ghost = None
        logger.debug("drag moved item", extra={"from_index": from_index, "to_index": new_index})
        self._fire(DragEvent(DRAGEND, item, from_index, new_index, ghost))
        return True
