import pytest
from fastapi.testclient import TestClient

from gallery_form.api.backend import ImageStore, create_app


@pytest.fixture
def store():
    return ImageStore()


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


def _upload(client, name, data=b"pixels", chunk=0, chunks=1):
    return client.post(
        "/upload",
        data={"name": name, "chunk": str(chunk), "chunks": str(chunks)},
        files={"file": (name, data, "application/octet-stream")},
    )


def test_single_chunk_upload_returns_item_fragment(client, store):
    r = _upload(client, "beach.jpg")
    assert r.status_code == 200
    assert '<img src="/image/1/thumb"' in r.text
    assert 'name="caption-1"' in r.text
    assert "image-delete" in r.text
    assert store.order() == ["1"]


def test_intermediate_chunks_are_acknowledged_only(client, store):
    r = _upload(client, "big.jpg", b"ab", chunk=0, chunks=2)
    assert r.text == "ok"
    assert len(store) == 0

    r = _upload(client, "big.jpg", b"cd", chunk=1, chunks=2)
    assert "/image/1/thumb" in r.text
    assert client.get("/image/1/thumb").content == b"abcd"


def test_file_names_are_escaped_in_the_fragment(client):
    r = _upload(client, "<b>x</b>.jpg")
    assert "<b>" not in r.text


def test_delete_then_missing(client, store):
    _upload(client, "a.jpg")
    assert client.post("/image/1/delete").json() == {"deleted": "1"}
    assert len(store) == 0
    assert client.post("/image/1/delete").status_code == 404


def test_reorder_and_list(client):
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        _upload(client, name)
    r = client.post("/reorder-images", data={"order": "3,1,2"})
    assert r.json() == {"order": ["3", "1", "2"]}
    assert client.get("/images").json() == {"order": ["3", "1", "2"], "count": 3}


def test_reorder_with_unknown_id_is_rejected(client, store):
    _upload(client, "a.jpg")
    r = client.post("/reorder-images", data={"order": "1,99"})
    assert r.status_code == 400
    assert store.order() == ["1"]


def test_partial_reorder_keeps_the_rest_behind(store):
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        store.add_chunk(name, 0, 1, b"")
    store.reorder(["3"])
    assert store.order() == ["3", "1", "2"]


def test_responses_carry_a_request_id(client):
    r = client.get("/images", headers={"X-Request-ID": "abc"})
    assert r.headers["X-Request-ID"] == "abc"
    assert client.get("/images").headers["X-Request-ID"]


def test_same_named_files_upload_side_by_side(client):
    def send(upload_id, data, chunk):
        fields = {"name": "photo.jpg", "chunk": str(chunk), "chunks": "2", "upload_id": upload_id}
        return client.post(
            "/upload",
            data=fields,
            files={"file": ("photo.jpg", data, "application/octet-stream")},
        )

    send("f_a", b"AA", 0)
    send("f_b", b"bb", 0)
    first = send("f_a", b"AA", 1)
    second = send("f_b", b"bb", 1)
    assert "/image/1/thumb" in first.text and "/image/2/thumb" in second.text
    assert client.get("/image/1/thumb").content == b"AAAA"
    assert client.get("/image/2/thumb").content == b"bbbb"
