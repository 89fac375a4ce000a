from __future__ import annotations

import base64
from datetime import datetime, timezone

import pytest
import requests

from conftest import make_response
from easydrive.exceptions import NetworkError
from easydrive.models import ExtractedRecord, SelectedFile
from easydrive.session import Identity
from easydrive.webhook import WebhookClient, encode_file, unwrap_response, utc_timestamp


class FakeHTTP:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def client_with(response=None, error=None):
    http = FakeHTTP(response, error)
    client = WebhookClient(
        extract_url="https://hooks.test/upload",
        submit_url="https://hooks.test/confirm",
        session=http,
    )
    return client, http


@pytest.fixture
def pdf() -> SelectedFile:
    return SelectedFile.from_bytes("release.pdf", b"%PDF-1.4 test")


class TestEncoding:
    def test_encode_file(self, pdf):
        encoded = encode_file(pdf)
        assert encoded["name"] == "release.pdf"
        assert encoded["type"] == "application/pdf"
        assert encoded["size"] == len(b"%PDF-1.4 test")
        assert base64.b64decode(encoded["base64"]) == b"%PDF-1.4 test"

    def test_unwrap_object(self):
        assert unwrap_response({"output": {}}) == {"output": {}}

    def test_unwrap_single_element_list(self):
        assert unwrap_response([{"text": "ok"}]) == {"text": "ok"}

    @pytest.mark.parametrize("body", [None, [], "text", [1], 42])
    def test_unwrap_unusable(self, body):
        assert unwrap_response(body) is None

    def test_utc_timestamp(self):
        stamp = utc_timestamp(datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc))
        assert stamp == "2024-01-15T09:30:00.000Z"


class TestExtract:
    def test_returns_output_from_object(self, pdf):
        client, http = client_with(make_response(200, {"output": {"vehicle": {"vin": "1HGCM"}}}))
        assert client.extract([pdf]) == {"vehicle": {"vin": "1HGCM"}}
        call = http.calls[0]
        assert call["url"] == "https://hooks.test/upload"
        assert call["json"]["files"][0]["name"] == "release.pdf"

    def test_returns_output_from_list(self, pdf):
        client, _ = client_with(make_response(200, [{"output": {"dealer_notes": "n"}}]))
        assert client.extract([pdf]) == {"dealer_notes": "n"}

    def test_missing_output(self, pdf):
        client, _ = client_with(make_response(200, {"status": "queued"}))
        assert client.extract([pdf]) is None

    def test_non_json_body(self, pdf):
        client, _ = client_with(make_response(200, b"accepted"))
        assert client.extract([pdf]) is None

    def test_server_text_is_the_error(self, pdf):
        client, _ = client_with(make_response(422, b"Unreadable document"))
        with pytest.raises(NetworkError) as excinfo:
            client.extract([pdf])
        assert str(excinfo.value) == "Unreadable document"
        assert excinfo.value.status_code == 422

    def test_generic_error_with_status(self, pdf):
        client, _ = client_with(make_response(502, b""))
        with pytest.raises(NetworkError, match=r"Upload failed \(502\)"):
            client.extract([pdf])

    def test_transport_failure(self, pdf):
        client, _ = client_with(error=requests.ConnectionError("connection refused"))
        with pytest.raises(NetworkError, match="connection refused"):
            client.extract([pdf])


class TestSubmit:
    def test_payload(self, pdf):
        client, http = client_with(make_response(200, {}))
        record = ExtractedRecord.from_output({"vehicle": {"vin": "1HGCM"}})
        identity = Identity(name="Sam Driver", email="sam@example.com")

        client.submit(record, [pdf], identity, submitted_at=datetime(2024, 3, 1, tzinfo=timezone.utc))

        payload = http.calls[0]["json"]
        assert http.calls[0]["url"] == "https://hooks.test/confirm"
        assert payload["submittedAt"] == "2024-03-01T00:00:00.000Z"
        assert payload["user"] == {"name": "Sam Driver", "email": "sam@example.com"}
        assert payload["userName"] == "Sam Driver"
        assert payload["formData"]["vehicle"]["vin"] == "1HGCM"
        assert payload["files"][0]["size"] == pdf.byte_count

    def test_without_files_or_identity(self):
        client, http = client_with(make_response(200, {}))
        client.submit(ExtractedRecord.from_output({}), [], Identity())
        payload = http.calls[0]["json"]
        assert payload["files"] == []
        assert payload["userName"] == "Account"

    def test_receipt_from_list(self):
        client, _ = client_with(make_response(200, [{"text": "Order #42 confirmed"}]))
        assert client.submit(ExtractedRecord.from_output({}), [], Identity()) == "Order #42 confirmed"

    @pytest.mark.parametrize("body", [{}, {"text": "   "}, {"text": 5}, b"OK"])
    def test_no_receipt(self, body):
        client, _ = client_with(make_response(200, body))
        assert client.submit(ExtractedRecord.from_output({}), [], Identity()) is None

    def test_failure(self):
        client, _ = client_with(make_response(500, b""))
        with pytest.raises(NetworkError, match=r"Webhook failed \(500\)"):
            client.submit(ExtractedRecord.from_output({}), [], Identity())
