from unittest.mock import MagicMock, patch

import pytest
import requests

from canvassing.providers.ocr_provider import MockOcrProvider, OcrSpaceProvider, get_ocr_provider


def _response(status_code=200, payload=None):
    response = MagicMock(status_code=status_code, text="")
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def provider():
    return OcrSpaceProvider(api_key="test-key", url="https://ocr.example.com/parse", timeout=5)


@patch("canvassing.providers.ocr_provider.requests.post")
def test_returns_parsed_text(mock_post, provider):
    mock_post.return_value = _response(payload={"ParsedResults": [{"ParsedText": "kopi_senja88\nHalo kak"}]})

    assert provider.extract_text(b"png-bytes", "chat.png") == "kopi_senja88\nHalo kak"

    _, kwargs = mock_post.call_args
    assert mock_post.call_args[0][0] == "https://ocr.example.com/parse"
    assert kwargs["data"] == {"apikey": "test-key", "language": "eng", "OCREngine": "2"}
    assert kwargs["files"] == {"file": ("chat.png", b"png-bytes")}
    assert kwargs["timeout"] == 5


@patch("canvassing.providers.ocr_provider.requests.post")
def test_missing_api_key_skips_call(mock_post):
    assert OcrSpaceProvider(api_key="").extract_text(b"png-bytes", "chat.png") == ""
    mock_post.assert_not_called()


@pytest.mark.parametrize("error", [requests.Timeout("slow"), requests.ConnectionError("down")])
@patch("canvassing.providers.ocr_provider.requests.post")
def test_transport_failures_yield_empty_text(mock_post, error, provider):
    mock_post.side_effect = error
    assert provider.extract_text(b"png-bytes", "chat.png") == ""


@patch("canvassing.providers.ocr_provider.requests.post")
def test_http_error_yields_empty_text(mock_post, provider):
    mock_post.return_value = _response(status_code=403)
    assert provider.extract_text(b"png-bytes", "chat.png") == ""


@patch("canvassing.providers.ocr_provider.requests.post")
def test_processing_error_yields_empty_text(mock_post, provider):
    mock_post.return_value = _response(
        payload={"OCRExitCode": 3, "IsErroredOnProcessing": True, "ErrorMessage": ["Unable to recognize the file type"]}
    )
    assert provider.extract_text(b"png-bytes", "chat.png") == ""


@patch("canvassing.providers.ocr_provider.requests.post")
def test_non_json_body_yields_empty_text(mock_post, provider):
    response = _response()
    response.json.side_effect = ValueError("not json")
    mock_post.return_value = response
    assert provider.extract_text(b"png-bytes", "chat.png") == ""


def test_get_ocr_provider_follows_settings(settings):
    settings.OCR_PROVIDER = "mock"
    settings.OCR_MOCK_TEXT = "Anda memulai obrolan dengan kopi_senja88"
    provider = get_ocr_provider()
    assert isinstance(provider, MockOcrProvider)
    assert provider.extract_text(b"", "chat.png") == "Anda memulai obrolan dengan kopi_senja88"

    settings.OCR_PROVIDER = "ocr_space"
    assert isinstance(get_ocr_provider(), OcrSpaceProvider)
