"""Word limits for rich-text fields elsewhere on the entry form.

A rich editor replaces a ``textarea.editor``. Its clean HTML is mirrored
into a hidden input carrying the textarea's name, so the normal form post
picks it up. A ``max-<n>`` class on the textarea caps the word count: going
over shows an error next to the field and marks the binding over its limit.
A form without a gallery coordinator then has its submit control disabled;
on the gallery form the coordinator folds the limit into its own rules.
"""

from __future__ import annotations

import logging
from html.parser import HTMLParser
from typing import Callable, Iterable, List, Optional, Protocol

from gallery_form.services.dom import Element, create

logger = logging.getLogger(__name__)


class RichTextField(Protocol):
    def get_clean_contents(self) -> str: ...

    def set_html(self, html: str, fire_change: bool = False) -> None: ...

    def on_change(self, callback: Callable[[], None]) -> None: ...


class TextAreaField:
    """A plain textarea standing in for a rich editor."""

    def __init__(self, textarea: Element):
        self.textarea = textarea
        self._callbacks: List[Callable[[], None]] = []

    def get_clean_contents(self) -> str:
        return self.textarea.value

    def set_html(self, html: str, fire_change: bool = False) -> None:
        self.textarea.value = html
        if fire_change:
            self._changed()

    def on_change(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def edit(self, value: str) -> None:
        self.textarea.value = value
        self._changed()

    def _changed(self) -> None:
        for cb in list(self._callbacks):
            cb()


class _TextExtractor(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.parts: List[str] = []

    def handle_data(self, data):
        self.parts.append(data)


def html_to_text(html: str) -> str:
    extractor = _TextExtractor()
    extractor.feed(html or "")
    extractor.close()
    return "".join(extractor.parts)


def count_words(text: str) -> int:
    return len(text.split())


def max_words_from_classes(classes: Iterable[str]) -> Optional[int]:
    max_words = None
    for cls in classes:
        if cls.startswith("max-"):
            try:
                max_words = int(cls[4:])
            except ValueError:
                max_words = None
    return max_words


def find_submit_button(el: Element) -> Optional[Element]:
    """The submit control is the last child of the enclosing form."""
    for node in el.ancestors():
        if node.tag == "form":
            return node.last_element_child()
    return None


ValidityHandler = Callable[["WordLimitBinding"], None]


def toggle_form_submit(binding: "WordLimitBinding") -> None:
    """Default handler for forms with no coordinator owning their submit control."""
    submit = find_submit_button(binding.data_field)
    if submit is not None:
        submit.set_disabled(binding.over_limit)


class WordLimitBinding:
    """Mirror a rich field into a hidden input and watch its word limit.

    The binding only shows or clears its own error message. Whether that
    blocks submission is decided by `on_validity_change`, called with the
    binding whenever `over_limit` flips.
    """

    def __init__(
        self,
        field: RichTextField,
        textarea: Element,
        max_words_error_text: str = "Too many words: ",
        error_class: str = "error",
        on_validity_change: Optional[ValidityHandler] = None,
    ):
        self.field = field
        self.error_text = max_words_error_text
        self.error_class = error_class
        self.on_validity_change = on_validity_change or toggle_form_submit
        self.over_limit = False
        self.max_words = max_words_from_classes(textarea.classes)
        self.data_field = create(
            "input", {"type": "hidden", "name": textarea.get_attribute("name") or ""}
        )
        self.data_field.value = textarea.value
        if textarea.parent is not None:
            textarea.parent.insert_before(self.data_field, textarea)
        field.on_change(self.update)
        if self.data_field.value:
            field.set_html(self.data_field.value, fire_change=False)

    def update(self) -> None:
        contents = self.field.get_clean_contents()
        self.data_field.value = contents
        if self.max_words is None:
            return
        words = count_words(html_to_text(contents))
        over_limit = words > self.max_words
        if over_limit:
            self._show_error(words)
        else:
            self._clear_error()
        if over_limit != self.over_limit:
            self.over_limit = over_limit
            self.on_validity_change(self)

    def error_element(self) -> Optional[Element]:
        host = self.data_field.parent
        return host.find(cls=self.error_class) if host is not None else None

    def _show_error(self, words: int) -> None:
        host = self.data_field.parent
        if host is None:
            return
        error = self.error_element()
        if error is None:
            error = host.append_child(create("div", {"class": self.error_class}))
        error.text = f"{self.error_text}{words}"
        logger.debug("word limit exceeded", extra={"words": words, "max_words": self.max_words})

    def _clear_error(self) -> None:
        error = self.error_element()
        if error is not None:
            error.remove()


def bind_editors(
    root: Element,
    field_factory: Callable[[Element], RichTextField],
    max_words_error_text: str = "Too many words: ",
    css_editor: str = "editor",
    error_class: str = "error",
    on_validity_change: Optional[ValidityHandler] = None,
) -> List[WordLimitBinding]:
    """Attach a rich field and word-limit binding to every ``textarea.editor``."""
    return [
        WordLimitBinding(
            field_factory(textarea), textarea, max_words_error_text, error_class, on_validity_change
        )
        for textarea in root.find_all("textarea", css_editor)
    ]


def strip_anchor_targets(root: Element) -> int:
    """Drop ``target`` attributes that rich editors add to links."""
    stripped = 0
    for a in root.find_all("a"):
        if a.get_attribute("target") is not None:
            a.remove_attribute("target")
            stripped += 1
    return stripped
