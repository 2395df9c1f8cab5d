"""Tests for the shared HTTP helpers."""

from unittest.mock import MagicMock, patch

import requests

from common import http_client
from constants import Constants


def _response(status_code=200, text='{"ok": true}'):
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"Content-Type": "application/json"}
    response.text = text
    return response


@patch("common.http_client.time.sleep")
@patch("common.http_client.requests.request")
class TestHttpClient:
    """Retries, backoff and the status-0 failure contract."""

    def test_get_json_success(self, mock_request, mock_sleep):
        mock_request.return_value = _response()
        status, headers, data = http_client.get_json("https://registry.example/pkg")
        assert status == 200
        assert data == {"ok": True}
        assert headers["Content-Type"] == "application/json"
        _, kwargs = mock_request.call_args
        assert kwargs["timeout"] == (Constants.HTTP_CONNECT_TIMEOUT, Constants.HTTP_READ_TIMEOUT)
        mock_sleep.assert_not_called()

    def test_timeouts_are_retried_then_reported(self, mock_request, mock_sleep):
        mock_request.side_effect = requests.Timeout("slow")
        status, _, text = http_client.get_json("https://registry.example/pkg")
        assert status == 0
        assert "timeout" in text
        assert mock_request.call_count == Constants.HTTP_RETRY_MAX
        assert mock_sleep.call_count == Constants.HTTP_RETRY_MAX - 1

    def test_backoff_grows_exponentially(self, mock_request, mock_sleep):
        mock_request.side_effect = requests.ConnectionError("refused")
        http_client.get_json("https://registry.example/pkg")
        delays = [c.args[0] for c in mock_sleep.call_args_list]
        assert delays == [Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** i) for i in range(len(delays))]

    def test_retryable_status_then_success(self, mock_request, mock_sleep):
        mock_request.side_effect = [_response(503, ""), _response()]
        status, _, data = http_client.get_json("https://registry.example/pkg")
        assert status == 200
        assert data == {"ok": True}
        assert mock_sleep.call_count == 1

    def test_not_found_is_not_retried(self, mock_request, mock_sleep):
        mock_request.return_value = _response(404, "")
        status, _, data = http_client.get_json("https://registry.example/pkg")
        assert status == 404
        assert data is None
        assert mock_request.call_count == 1

    def test_invalid_json_gives_none(self, mock_request, mock_sleep):
        mock_request.return_value = _response(200, "<html>")
        assert http_client.get_json("https://registry.example/pkg")[2] is None

    def test_post_json_sends_payload(self, mock_request, mock_sleep):
        mock_request.return_value = _response(200, '{"vulns": []}')
        status, _, data = http_client.post_json("https://osv.example/v1/query", {"version": "1.0.0"})
        assert status == 200
        assert data == {"vulns": []}
        args, kwargs = mock_request.call_args
        assert args[0] == "POST"
        assert kwargs["data"] == '{"version": "1.0.0"}'
        assert kwargs["headers"]["Content-Type"] == "application/json"
