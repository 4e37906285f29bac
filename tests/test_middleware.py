"""Request ids and access-log headers."""

from taskboard.middleware.request_id import REQUEST_ID_HEADER, resolve_request_id


def test_resolve_request_id_keeps_plain_tokens():
    assert resolve_request_id("abc-123_x.y") == "abc-123_x.y"


def test_resolve_request_id_replaces_unsafe_values():
    for incoming in (None, "", "has space", "x" * 65, "line\nbreak"):
        minted = resolve_request_id(incoming)
        assert minted != incoming
        assert len(minted) == 32


async def test_request_id_echoed_and_timing_header_set(client):
    response = await client.get("/health", headers={REQUEST_ID_HEADER: "trace-42"})
    assert response.headers[REQUEST_ID_HEADER] == "trace-42"
    assert float(response.headers["X-Process-Time"]) >= 0


async def test_unsafe_request_id_is_replaced(client):
    response = await client.get("/health", headers={REQUEST_ID_HEADER: "bad id"})
    assert response.headers[REQUEST_ID_HEADER] != "bad id"
