"""Small element tree for the gallery page.

The widget only needs a handful of DOM operations: find an element by tag
and class, walk up to an enclosing container, insert and remove children,
toggle visibility and attach listeners. `Element` covers exactly that, and
`parse_fragment` builds elements from server-rendered HTML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Callable, Dict, Iterator, List, Optional

VOID_TAGS = frozenset(
    ("area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr")
)

Listener = Callable[["DomEvent"], None]


@dataclass
class DomEvent:
    type: str
    target: "Element"
    data: Dict[str, object] = field(default_factory=dict)
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


class Element:
    def __init__(
        self,
        tag: str,
        attrs: Optional[Dict[str, str]] = None,
        text: str = "",
        children: Optional[List["Element"]] = None,
    ):
        self.tag = tag.lower()
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.text = text
        self.parent: Optional[Element] = None
        self.children: List[Element] = []
        self.value = self.attrs.pop("value", text if self.tag == "textarea" else "")
        self._listeners: Dict[str, List[Listener]] = {}
        self._active: Optional[Element] = None
        for child in children or ():
            self.append_child(child)

    def __repr__(self) -> str:
        ident = f"#{self.id}" if self.id else ""
        classes = "".join(f".{c}" for c in self.classes)
        return f"<Element {self.tag}{ident}{classes}>"

    # attributes
    @property
    def id(self) -> Optional[str]:
        return self.attrs.get("id")

    @property
    def classes(self) -> List[str]:
        return self.attrs.get("class", "").split()

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def add_class(self, name: str) -> None:
        if not self.has_class(name):
            self.attrs["class"] = " ".join(self.classes + [name])

    def remove_class(self, name: str) -> None:
        remaining = [c for c in self.classes if c != name]
        if remaining:
            self.attrs["class"] = " ".join(remaining)
        else:
            self.attrs.pop("class", None)

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        self.attrs[name] = value

    def remove_attribute(self, name: str) -> None:
        self.attrs.pop(name, None)

    # display state
    @property
    def is_shown(self) -> bool:
        return "hidden" not in self.attrs

    def show(self) -> None:
        self.attrs.pop("hidden", None)

    def hide(self) -> None:
        self.attrs["hidden"] = "hidden"

    @property
    def disabled(self) -> bool:
        return "disabled" in self.attrs

    def set_disabled(self, disabled: bool) -> None:
        if disabled:
            self.attrs["disabled"] = "disabled"
        else:
            self.attrs.pop("disabled", None)

    # tree
    def root(self) -> "Element":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def ancestors(self) -> Iterator["Element"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def closest(self, cls: str) -> Optional["Element"]:
        """Return this element or its nearest ancestor carrying `cls`."""
        if self.has_class(cls):
            return self
        for node in self.ancestors():
            if node.has_class(cls):
                return node
        return None

    def contains(self, other: "Element") -> bool:
        return other is self or any(a is self for a in other.ancestors())

    def append_child(self, child: "Element") -> "Element":
        child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def insert_child_at(self, child: "Element", index: int) -> "Element":
        child.remove()
        child.parent = self
        index = max(0, min(index, len(self.children)))
        self.children.insert(index, child)
        return child

    def insert_before(self, child: "Element", reference: "Element") -> "Element":
        if reference.parent is not self:
            raise ValueError(f"{reference!r} is not a child of {self!r}")
        child.remove()
        return self.insert_child_at(child, self.children.index(reference))

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def remove_children(self) -> None:
        for child in list(self.children):
            child.remove()

    def index_in_parent(self) -> int:
        if self.parent is None:
            return -1
        return self.parent.children.index(self)

    def first_element_child(self) -> Optional["Element"]:
        return self.children[0] if self.children else None

    def last_element_child(self) -> Optional["Element"]:
        return self.children[-1] if self.children else None

    def iter_descendants(self) -> Iterator["Element"]:
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find_all(self, tag: Optional[str] = None, cls: Optional[str] = None) -> List["Element"]:
        tag = tag.lower() if tag else None
        return [
            el
            for el in self.iter_descendants()
            if (tag is None or el.tag == tag) and (cls is None or el.has_class(cls))
        ]

    def find(self, tag: Optional[str] = None, cls: Optional[str] = None) -> Optional["Element"]:
        found = self.find_all(tag, cls)
        return found[0] if found else None

    def find_by_id(self, element_id: str) -> Optional["Element"]:
        if self.id == element_id:
            return self
        for el in self.iter_descendants():
            if el.id == element_id:
                return el
        return None

    def text_content(self) -> str:
        return self.text + "".join(child.text_content() for child in self.children)

    def clone(self, deep: bool = False) -> "Element":
        attrs = dict(self.attrs)
        copy = Element(self.tag, attrs, self.text)
        copy.value = self.value
        if deep:
            for child in self.children:
                copy.append_child(child.clone(deep=True))
        return copy

    # focus
    def focus(self) -> None:
        self.root()._active = self

    @property
    def active_element(self) -> Optional["Element"]:
        return self.root()._active

    # events
    def add_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: Optional[str] = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(v) for v in self._listeners.values())

    def dispatch(self, event: DomEvent) -> DomEvent:
        """Deliver `event` to this element, then bubble it up the ancestors."""
        node: Optional[Element] = self
        while node is not None and not event.propagation_stopped:
            for listener in list(node._listeners.get(event.type, [])):
                listener(event)
            node = node.parent
        return event

    def click(self) -> DomEvent:
        return self.dispatch(DomEvent("click", self))


def create(
    tag: str,
    attrs: Optional[Dict[str, str]] = None,
    text: str = "",
    *children: Element,
) -> Element:
    return Element(tag, attrs, text, list(children))


class _FragmentBuilder(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.top: List[Element] = []
        self._stack: List[Element] = []

    def _attach(self, el: Element) -> None:
        if self._stack:
            self._stack[-1].append_child(el)
        else:
            self.top.append(el)

    def handle_starttag(self, tag, attrs):
        el = Element(tag, {k: (v if v is not None else k) for k, v in attrs})
        self._attach(el)
        if el.tag not in VOID_TAGS:
            self._stack.append(el)

    def handle_startendtag(self, tag, attrs):
        self._attach(Element(tag, {k: (v if v is not None else k) for k, v in attrs}))

    def handle_endtag(self, tag):
        tag = tag.lower()
        # Close up to the matching open tag; stray end tags are ignored
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i].tag == tag:
                del self._stack[i:]
                break

    def handle_data(self, data):
        if not self._stack:
            return
        current = self._stack[-1]
        current.text += data
        if current.tag == "textarea":
            current.value = current.text


def parse_fragment(html: str) -> List[Element]:
    """Parse an HTML fragment into its top-level elements.

    Whitespace between top-level elements is dropped.
    """
    builder = _FragmentBuilder()
    builder.feed(html or "")
    builder.close()
    return builder.top
