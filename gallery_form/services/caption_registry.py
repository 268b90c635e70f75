import logging
from typing import Dict, List, Optional, Sequence

from gallery_form.models.gallery import ValidationResult
from gallery_form.services.dom import Element, create

logger = logging.getLogger(__name__)


class CaptionRegistry:
    """Caption fields of the gallery items, keyed by item id.

    Values are never cached: `validate_all` and `all_filled` read the live
    field so edits made directly by the user are always seen.
    """

    def __init__(self, error_class: str = "error", required_text: str = "Caption required"):
        self.error_class = error_class
        self.required_text = required_text
        self._fields: Dict[str, Element] = {}

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def ids(self) -> List[str]:
        return list(self._fields)

    def field(self, item_id: str) -> Optional[Element]:
        return self._fields.get(item_id)

    def register(self, item_id: str, field: Element) -> None:
        self._fields[item_id] = field

    def unregister(self, item_id: str) -> Optional[Element]:
        return self._fields.pop(item_id, None)

    def has_caption(self, item_id: str) -> bool:
        field = self._fields.get(item_id)
        return field is not None and bool(field.value.strip())

    def all_filled(self) -> bool:
        return all(field.value.strip() for field in self._fields.values())

    def _in_order(self, order: Optional[Sequence[str]]) -> List[str]:
        if order is None:
            return list(self._fields)
        ids = [i for i in dict.fromkeys(order) if i in self._fields]
        # fields missing from `order` are still checked, after the ordered ones
        return ids + [i for i in self._fields if i not in ids]

    def validate_all(self, order: Optional[Sequence[str]] = None) -> ValidationResult:
        """Flag every empty caption and clear flags on the ones now filled.

        Fields are visited in `order` (item ids as they appear on the page)
        when given, so `first_invalid` is the topmost empty caption. Each
        field's host shows at most one error message at a time.
        """
        invalid: List[str] = []
        first_invalid: Optional[Element] = None
        for item_id in self._in_order(order):
            field = self._fields[item_id]
            host = field.parent or field
            self._clear_errors(host)
            if field.value.strip():
                continue
            host.insert_child_at(
                create("p", {"class": self.error_class}, self.required_text), 0
            )
            invalid.append(item_id)
            if first_invalid is None:
                first_invalid = field
        if invalid:
            logger.debug("captions missing", extra={"item_ids": invalid})
        return ValidationResult(ok=not invalid, first_invalid=first_invalid, invalid_ids=invalid)

    def _clear_errors(self, host: Element) -> None:
        for child in list(host.children):
            if child.tag == "p" and child.has_class(self.error_class):
                child.remove()
