import io
import json

import pytest
import requests
import responses

from qnify import consts
from qnify.http_client import HttpClient

BASE = "http://api.example.com"
EXPECTED_RESP = '{"message": "success"}'


@pytest.fixture
def mock():
    with responses.RequestsMock() as rsps:
        yield rsps


def test_get(mock):
    path = "/test/one/two"
    mock.add(responses.GET, BASE + path, body=EXPECTED_RESP, status=200)

    client = HttpClient(BASE, True)
    resp = client.get(path, {consts.AUTH_HEADER: "token"})

    assert resp.status_code == 200
    assert resp.content == EXPECTED_RESP.encode()
    request = mock.calls[0].request
    assert request.method == "GET"
    assert request.url == BASE + path
    assert request.headers[consts.AUTH_HEADER] == "token"


def test_post(mock):
    path = "/test"
    mock.add(responses.POST, BASE + path, body=EXPECTED_RESP, status=201)

    client = HttpClient(BASE, False)
    resp = client.post(
        path, {consts.CONTENT_TYPE: consts.TEXT_TYPE}, io.BytesIO(b"Hello World")
    )

    assert resp.status_code == 201
    assert resp.text == EXPECTED_RESP
    request = mock.calls[0].request
    assert request.method == "POST"
    assert request.url == BASE + path
    assert request.body == b"Hello World"
    assert request.headers[consts.CONTENT_TYPE] == consts.TEXT_TYPE


def test_post_json(mock):
    path = "/test/path"
    mock.add(responses.POST, BASE + path, body=EXPECTED_RESP, status=201)

    client = HttpClient(BASE, False)
    resp = client.post_json(path, {"key": "value"})

    assert resp.status_code == 201
    assert resp.text == EXPECTED_RESP
    request = mock.calls[0].request
    assert request.method == "POST"
    assert request.headers[consts.CONTENT_TYPE] == consts.JSON_TYPE
    assert json.loads(request.body)["key"] == "value"


def test_retry(mock):
    url = BASE + "/test"
    mock.add(responses.GET, url, body='{"error": "internal server error"}', status=500)
    mock.add(responses.GET, url, body='{"error": "internal server error"}', status=500)
    mock.add(responses.GET, url, body="OK", status=200)

    client = HttpClient(BASE, True)
    client.backoff = 0
    resp = client.get("/test")

    assert resp.status_code == 200
    assert resp.text == "OK"
    assert len(mock.calls) == 3


def test_retries_exhausted_returns_last_response(mock):
    url = BASE + "/down"
    mock.add(responses.GET, url, body="unavailable", status=503)

    client = HttpClient(BASE, False)
    client.backoff = 0
    resp = client.get("/down")

    assert resp.status_code == 503
    assert len(mock.calls) == client.retry_count + 1


def test_client_errors_are_not_retried(mock):
    url = BASE + "/missing"
    mock.add(responses.GET, url, body="nope", status=404)

    client = HttpClient(BASE, False)
    client.backoff = 0
    resp = client.get("/missing")

    assert resp.status_code == 404
    assert len(mock.calls) == 1


def test_connection_errors_raise_after_retries(mock):
    url = BASE + "/broken"
    mock.add(responses.GET, url, body=requests.ConnectionError("refused"))

    client = HttpClient(BASE, False)
    client.backoff = 0
    with pytest.raises(requests.ConnectionError):
        client.get("/broken")
    assert len(mock.calls) == client.retry_count + 1


def test_post_body_is_resent_on_retry(mock):
    url = BASE + "/echo"
    mock.add(responses.POST, url, body="fail", status=500)
    mock.add(responses.POST, url, body="done", status=200)

    client = HttpClient(BASE, False)
    client.backoff = 0
    resp = client.post("/echo", None, "payload")

    assert resp.text == "done"
    assert [call.request.body for call in mock.calls] == [b"payload", b"payload"]