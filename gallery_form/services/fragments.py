from typing import Optional

from gallery_form.core.exceptions import FragmentError
from gallery_form.core.settings import CssHooks
from gallery_form.models.gallery import GalleryItem
from gallery_form.services.dom import Element, create, parse_fragment


def parse_image_id(image: Element) -> str:
    """Return the image id from a served URL such as ``/image/<id>/thumb``."""
    src = image.get_attribute("src") or ""
    fields = src.split("/")
    if len(fields) < 3 or not fields[2]:
        raise FragmentError(f"cannot read an image id from src={src!r}")
    return fields[2]


def find_item_image(node: Element, css: CssHooks) -> Optional[Element]:
    """Return the thumbnail of a gallery item: first child of its image container."""
    container = node.find("div", css.image_container)
    if container is not None:
        return container.first_element_child()
    return None


def find_caption_field(node: Element) -> Optional[Element]:
    return node.find("textarea")


def item_from_node(node: Element, css: CssHooks) -> GalleryItem:
    image = find_item_image(node, css) or node.find("img")
    if image is None:
        raise FragmentError(f"{node!r} has no image")
    return GalleryItem(id=parse_image_id(image), node=node, caption_field=find_caption_field(node))


def build_item(html: str, css: CssHooks) -> GalleryItem:
    """Wrap a server-rendered item fragment in a new list entry.

    The markup is used verbatim; only the id and caption field are read out.
    """
    li = create("li")
    for el in parse_fragment(html):
        li.append_child(el)
    return item_from_node(li, css)
