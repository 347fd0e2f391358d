import json
import unittest

import mock
import requests

from freeplay_exporter.request import (
    DEFAULT_BASE_URL,
    USER_AGENT,
    APIError,
    completions_url,
    post_completion,
)
from freeplay_exporter.test.test_utils import TEST_API_KEY, TEST_PROJECT_ID

SESSION_ID = "01234567-89ab-cdef-0123-456789abcdef"

PAYLOAD = {
    "messages": [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
    ],
    "inputs": {"name": "bob"},
    "prompt_info": {
        "prompt_template_version_id": "prompt-version-1",
        "environment": "prod",
    },
}


def _response(status_code, content=b""):
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    return response


class TestCompletionsUrl(unittest.TestCase):
    def test_default_base_url(self):
        self.assertEqual(
            completions_url(None, "proj", SESSION_ID),
            "https://app.freeplay.ai/api/v2/projects/proj/sessions/%s/completions"
            % SESSION_ID,
        )
        self.assertEqual(DEFAULT_BASE_URL, "https://app.freeplay.ai/api/v2")

    def test_custom_base_url_trailing_slash(self):
        self.assertEqual(
            completions_url("http://localhost:8080/api/v2/", "proj", "sess"),
            "http://localhost:8080/api/v2/projects/proj/sessions/sess/completions",
        )


class TestPostCompletion(unittest.TestCase):
    @mock.patch("freeplay_exporter.request._session.post")
    def test_request_shape(self, mock_post):
        mock_post.return_value = _response(201)

        post_completion(
            TEST_API_KEY, "https://example.com/api/v2", TEST_PROJECT_ID, SESSION_ID, PAYLOAD
        )

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        self.assertEqual(
            args[0],
            "https://example.com/api/v2/projects/%s/sessions/%s/completions"
            % (TEST_PROJECT_ID, SESSION_ID),
        )
        self.assertEqual(kwargs["headers"]["Content-Type"], "application/json")
        self.assertEqual(
            kwargs["headers"]["Authorization"], "Bearer %s" % TEST_API_KEY
        )
        self.assertEqual(kwargs["headers"]["User-Agent"], USER_AGENT)
        self.assertEqual(json.loads(kwargs["data"]), PAYLOAD)
        self.assertEqual(kwargs["timeout"], 15)

    @mock.patch("freeplay_exporter.request._session.post")
    def test_any_2xx_is_success(self, mock_post):
        for status in (200, 201, 202, 204):
            mock_post.return_value = _response(status, b"ignored")
            res = post_completion(TEST_API_KEY, None, TEST_PROJECT_ID, SESSION_ID, PAYLOAD)
            self.assertEqual(res.status_code, status)

    @mock.patch("freeplay_exporter.request._session.post")
    def test_error_message_from_body(self, mock_post):
        mock_post.return_value = _response(
            401, json.dumps({"message": "Invalid API key"}).encode("utf-8")
        )

        with self.assertRaises(APIError) as cm:
            post_completion(TEST_API_KEY, None, TEST_PROJECT_ID, SESSION_ID, PAYLOAD)

        self.assertEqual(cm.exception.status, 401)
        self.assertEqual(cm.exception.message, "Invalid API key")
        self.assertEqual(str(cm.exception), "[Freeplay] Invalid API key (401)")

    @mock.patch("freeplay_exporter.request._session.post")
    def test_error_with_non_json_body(self, mock_post):
        mock_post.return_value = _response(502, b"Bad Gateway")

        with self.assertRaises(APIError) as cm:
            post_completion(TEST_API_KEY, None, TEST_PROJECT_ID, SESSION_ID, PAYLOAD)

        self.assertEqual(cm.exception.status, 502)
        self.assertEqual(cm.exception.message, "Bad Gateway")

    @mock.patch("freeplay_exporter.request._session.post")
    def test_redirect_is_not_success(self, mock_post):
        mock_post.return_value = _response(304)

        with self.assertRaises(APIError):
            post_completion(TEST_API_KEY, None, TEST_PROJECT_ID, SESSION_ID, PAYLOAD)

    @mock.patch("freeplay_exporter.request._session.post")
    def test_transport_error_propagates(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        with self.assertRaises(requests.ConnectionError):
            post_completion(TEST_API_KEY, None, TEST_PROJECT_ID, SESSION_ID, PAYLOAD)

    def test_unserializable_payload(self):
        payload = dict(PAYLOAD, inputs={"when": object()})
        with mock.patch("freeplay_exporter.request._session.post") as mock_post:
            with self.assertRaises(TypeError):
                post_completion(TEST_API_KEY, None, TEST_PROJECT_ID, SESSION_ID, payload)
            mock_post.assert_not_called()
