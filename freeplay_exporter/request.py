import json
import logging
from typing import Any, Optional, Union

import requests

from freeplay_exporter.types import CompletionPayload
from freeplay_exporter.utils import remove_trailing_slash
from freeplay_exporter.version import VERSION

DEFAULT_BASE_URL = "https://app.freeplay.ai/api/v2"
DEFAULT_TIMEOUT = 15
USER_AGENT = "freeplay-exporter-python/" + VERSION

# No retries: a failed delivery is reported back to the span processor.
adapter = requests.adapters.HTTPAdapter(pool_maxsize=10, max_retries=0)
_session = requests.sessions.Session()
_session.mount("https://", adapter)
_session.mount("http://", adapter)


def completions_url(base_url: Optional[str], project_id: str, session_id: str) -> str:
    return "%s/projects/%s/sessions/%s/completions" % (
        remove_trailing_slash(base_url or DEFAULT_BASE_URL),
        project_id,
        session_id,
    )


def post_completion(
    api_key: str,
    base_url: Optional[str],
    project_id: str,
    session_id: str,
    payload: CompletionPayload,
    timeout: int = DEFAULT_TIMEOUT,
) -> requests.Response:
    """Post a completion for a session. Raises `APIError` on a non-2xx response."""
    log = logging.getLogger("freeplay_exporter")
    url = completions_url(base_url, project_id, session_id)
    data = json.dumps(payload)
    log.debug("making request: %s to url: %s", data, url)
    headers = {
        "Content-Type": "application/json",
        "Authorization": "Bearer %s" % api_key,
        "User-Agent": USER_AGENT,
    }

    res = _session.post(url, data=data, headers=headers, timeout=timeout)
    return _process_response(res, success_message="completion recorded successfully")


def _process_response(
    res: requests.Response, success_message: str
) -> Union[requests.Response, Any]:
    log = logging.getLogger("freeplay_exporter")
    if 200 <= res.status_code < 300:
        log.debug(success_message)
        return res
    try:
        payload = res.json()
        log.debug("received response: %s", payload)
        raise APIError(res.status_code, payload["message"])
    except (KeyError, TypeError, ValueError):
        raise APIError(res.status_code, res.text or "HTTP error")


class APIError(Exception):
    def __init__(self, status: Union[int, str], message: str):
        self.message = message
        self.status = status

    def __str__(self):
        msg = "[Freeplay] {0} ({1})"
        return msg.format(self.message, self.status)
