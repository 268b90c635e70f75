"""Requests the gallery sends to the server: deletes and reorders.

Both are fire-and-forget. The widget has already applied the change to the
page when the request goes out; the response is never read and a failure is
only logged. A failed request leaves the server's view different from the
page until the next reload.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol, Sequence

import httpx

from gallery_form.core.exceptions import TransportError

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")


class Transport(Protocol):
    def delete_image(self, image_id: str) -> None: ...

    def reorder_images(self, image_ids: Sequence[str]) -> None: ...


def reorder_payload(image_ids: Sequence[str]) -> Dict[str, str]:
    return {"order": ",".join(str(i) for i in image_ids)}


class HttpTransport:
    def __init__(self, client: httpx.Client, background: bool = True):
        self.client = client
        # Run each request on a daemon thread; tests pass False to send inline
        self.background = background
        self._threads: List[threading.Thread] = []

    @classmethod
    def from_settings(cls, settings) -> "HttpTransport":
        client = httpx.Client(
            base_url=settings.BACKEND_BASE_URL,
            timeout=float(settings.TRANSPORT_TIMEOUT_SECONDS),
        )
        return cls(client)

    def post(self, path: str, data: Optional[Dict[str, str]] = None) -> httpx.Response:
        """Blocking POST; raises TransportError on any failure."""
        try:
            response = self.client.post(path, data=data)
        except httpx.HTTPError as exc:
            raise TransportError(f"POST {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(
                f"POST {path} returned {response.status_code}", status_code=response.status_code
            )
        return response

    def delete_image(self, image_id: str) -> None:
        self._fire(f"/image/{image_id}/delete")

    def reorder_images(self, image_ids: Sequence[str]) -> None:
        self._fire("/reorder-images", reorder_payload(image_ids))

    def _fire(self, path: str, data: Optional[Dict[str, str]] = None) -> None:
        if self.background:
            t = threading.Thread(target=self._send_quietly, args=(path, data), daemon=True)
            t.start()
            self._threads = [th for th in self._threads if th.is_alive()] + [t]
        else:
            self._send_quietly(path, data)

    def _send_quietly(self, path: str, data: Optional[Dict[str, str]]) -> None:
        try:
            self.post(path, data)
            audit.info("gallery.transport.sent", extra={"path": path})
        except TransportError as exc:
            logger.warning(
                "gallery.transport.dropped",
                extra={"path": path, "error": str(exc), "status_code": exc.status_code},
            )

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for requests still in flight, e.g. before shutting down."""
        for t in self._threads:
            t.join(timeout)
        self._threads = [t for t in self._threads if t.is_alive()]

    def close(self) -> None:
        self.join(timeout=1.0)
        self.client.close()
