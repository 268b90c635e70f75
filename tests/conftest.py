from typing import Iterable, List, Optional, Tuple

import pytest

from gallery_form.core.settings import GalleryConfig
from gallery_form.models.gallery import FileDescriptor
from gallery_form.services.coordinator import GalleryCoordinator
from gallery_form.services.dom import Element, parse_fragment
from gallery_form.services.upload_engine import ScriptedUploadEngine


def item_html(image_id: str, caption: str = "", wrapped_delete: bool = False) -> str:
    """Markup the server renders for one gallery item."""
    delete = '<a href="#" class="image-delete">Delete</a>'
    if wrapped_delete:
        delete = f'<span class="tools"><em>{delete}</em></span>'
    return (
        f'<div class="image-container"><img src="/image/{image_id}/thumb">{delete}</div>'
        f'<textarea name="caption-{image_id}">{caption}</textarea>'
    )


def page_html(items: Iterable[Tuple[str, str]] = ()) -> str:
    lis = "".join(f"<li>{item_html(i, c)}</li>" for i, c in items)
    return (
        '<form id="entry">'
        '<div id="upload-wrap"><a id="upload" href="#">Upload</a></div>'
        '<div id="files-list"><p>Loading uploader...</p></div>'
        '<div id="images-description">Drag images to reorder them.</div>'
        f'<ul id="images">{lis}</ul>'
        '<p id="num-images-error">Please upload between 15 and 20 images.</p>'
        '<input type="submit" id="submit">'
        "</form>"
    )


def make_page(items: Iterable[Tuple[str, str]] = ()) -> Element:
    return parse_fragment(page_html(items))[0]


def captioned(n: int, start: int = 1, caption: str = "a caption") -> List[Tuple[str, str]]:
    return [(str(i), caption) for i in range(start, start + n)]


class RecordingTransport:
    def __init__(self):
        self.deleted: List[str] = []
        self.reorders: List[List[str]] = []

    def delete_image(self, image_id: str) -> None:
        self.deleted.append(image_id)

    def reorder_images(self, image_ids) -> None:
        self.reorders.append(list(image_ids))


@pytest.fixture
def config():
    return GalleryConfig()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def engine():
    return ScriptedUploadEngine()


@pytest.fixture
def build(engine, transport):
    """Build a coordinator over a fresh page holding `items`."""

    def _build(items: Iterable[Tuple[str, str]] = (), config: Optional[GalleryConfig] = None):
        page = make_page(items)
        coord = GalleryCoordinator(page, engine, transport, config or GalleryConfig())
        return coord, page

    return _build


def files(*names: str) -> List[FileDescriptor]:
    return [FileDescriptor(name=n, size=10) for n in names]
