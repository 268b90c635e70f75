"""In-memory backend speaking the gallery's transport contract.

Useful for local development and for exercising the HTTP engine and
transport in tests. It keeps images in memory only and does no validation
of its own beyond rejecting unknown ids.
"""

import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

logger = logging.getLogger("app")
audit = logging.getLogger("audit")

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

router = APIRouter()


@dataclass
class StoredImage:
    id: str
    name: str
    data: bytes
    caption: str = ""


class ImageStore:
    def __init__(self):
        self._images: "OrderedDict[str, StoredImage]" = OrderedDict()
        self._partial: Dict[str, List[bytes]] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._images)

    def order(self) -> List[str]:
        return list(self._images)

    def get(self, image_id: str) -> Optional[StoredImage]:
        return self._images.get(image_id)

    def add_chunk(
        self, name: str, index: int, total: int, data: bytes, upload_id: str = ""
    ) -> Optional[StoredImage]:
        """Buffer one chunk; return the stored image once the last chunk arrives.

        Chunks are grouped by `upload_id`, so two files sharing a name can be
        in flight at once. Clients that send no id fall back to the name.
        """
        key = upload_id or name
        if index == 0:
            self._partial[key] = []
        self._partial.setdefault(key, []).append(data)
        if index < total - 1:
            return None
        payload = b"".join(self._partial.pop(key, []))
        image = StoredImage(id=str(self._next_id), name=name, data=payload)
        self._next_id += 1
        self._images[image.id] = image
        return image

    def delete(self, image_id: str) -> bool:
        return self._images.pop(image_id, None) is not None

    def reorder(self, ids: List[str]) -> None:
        unknown = [i for i in ids if i not in self._images]
        if unknown:
            raise KeyError(",".join(unknown))
        # ids not named keep their relative order after the named ones
        rest = [i for i in self._images if i not in ids]
        self._images = OrderedDict((i, self._images[i]) for i in list(ids) + rest)


def _store(request: Request) -> ImageStore:
    return request.app.state.store


@router.post("/upload")
async def upload_chunk(
    request: Request,
    file: UploadFile = File(...),
    name: str = Form(...),
    chunk: int = Form(0),
    chunks: int = Form(1),
    upload_id: str = Form(""),
):
    data = await file.read()
    image = _store(request).add_chunk(name, chunk, max(1, chunks), data, upload_id)
    if image is None:
        return PlainTextResponse("ok")
    audit.info("backend.image.stored", extra={"image_id": image.id, "file": name})
    return templates.TemplateResponse(
        request, "gallery_item.html", context={"image": image}, media_type="text/html"
    )


@router.post("/image/{image_id}/delete")
async def delete_image(request: Request, image_id: str):
    if not _store(request).delete(image_id):
        raise HTTPException(status_code=404, detail="Image not found")
    audit.info("backend.image.deleted", extra={"image_id": image_id})
    return {"deleted": image_id}


@router.post("/reorder-images")
async def reorder_images(request: Request, order: str = Form("")):
    ids = [i for i in order.split(",") if i]
    try:
        _store(request).reorder(ids)
    except KeyError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown image ids: {exc.args[0]}")
    audit.info("backend.images.reordered", extra={"order": ids})
    return {"order": _store(request).order()}


@router.get("/images", response_class=JSONResponse)
async def list_images(request: Request):
    store = _store(request)
    return {"order": store.order(), "count": len(store)}


@router.get("/image/{image_id}/thumb")
async def image_thumb(request: Request, image_id: str):
    image = _store(request).get(image_id)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=image.data, media_type="application/octet-stream")


def create_app(store: Optional[ImageStore] = None) -> FastAPI:
    app = FastAPI()
    app.state.store = store if store is not None else ImageStore()
    app.include_router(router)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()
        extra_ctx = {"request_id": request_id, "method": request.method, "path": request.url.path}
        logger.info("request.start", extra=extra_ctx)
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception("request.error", extra={**extra_ctx, "duration_ms": duration_ms})
            raise
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request.end",
            extra={**extra_ctx, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response

    return app
