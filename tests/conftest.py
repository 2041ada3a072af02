"""Shared pytest fixtures for the finnet tests.

Provides fakes for the identity generator and for HTTP responses so tests
stay deterministic and never touch the network.
"""

import itertools
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pytest
import requests
from requests.adapters import BaseAdapter

from finnet.config import FinnetConfig


@pytest.fixture
def finnet_config(tmp_path: Path) -> FinnetConfig:
    """Config fixture: logs into a temp dir, no proxies, fast retries."""
    return FinnetConfig(
        retry_count=3,
        timeout_seconds=5,
        retry_backoff_seconds=0.0,
        log_directory=tmp_path,
        log_level="INFO",
    )


@pytest.fixture
def identity_generator():
    """Deterministic identity generator yielding ``agent-1``, ``agent-2``, ..."""
    counter = itertools.count(1)

    def generate() -> str:
        return f"agent-{next(counter)}"

    return generate


@pytest.fixture(autouse=True)
def _reset_root_handlers():
    yield
    logging.getLogger().handlers.clear()


class _FakeMessage:
    def __init__(self, headers: Sequence[Tuple[str, str]]) -> None:
        self._headers = list(headers)

    def get_all(self, name, default=None):
        values = [v for k, v in self._headers if k.lower() == name.lower()]
        return values or default


class _FakeOriginalResponse:
    def __init__(self, headers: Sequence[Tuple[str, str]]) -> None:
        self.msg = _FakeMessage(headers)


class _FakeRaw:
    """Just enough of urllib3's response for Requests' cookie extraction."""

    def __init__(self, headers: Sequence[Tuple[str, str]]) -> None:
        self._original_response = _FakeOriginalResponse(headers)


class RecordingAdapter(BaseAdapter):
    """Transport adapter that answers locally and records every request.

    Args:
        set_cookies: ``Set-Cookie`` header values returned on every response.
        status_codes: Status codes returned in order; the last one repeats.
    """

    def __init__(
        self,
        set_cookies: Iterable[str] = (),
        status_codes: Sequence[int] = (200,),
    ) -> None:
        super().__init__()
        self.set_cookies = list(set_cookies)
        self.status_codes = list(status_codes)
        self.sent: List[requests.PreparedRequest] = []
        self.send_kwargs: List[dict] = []

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.sent.append(request)
        self.send_kwargs.append({"timeout": timeout, "proxies": proxies})
        idx = min(len(self.sent), len(self.status_codes)) - 1

        headers = [("Set-Cookie", value) for value in self.set_cookies]
        response = requests.Response()
        response.status_code = self.status_codes[idx]
        response.url = request.url
        response.request = request
        response.reason = "OK"
        response.encoding = "utf-8"
        response._content = b"ok"
        response._content_consumed = True
        for key, value in headers:
            response.headers[key] = value
        response.raw = _FakeRaw(headers)
        return response

    def close(self) -> None:
        pass


@pytest.fixture
def recording_adapter_factory():
    def make(set_cookies: Iterable[str] = (), status_codes: Optional[Sequence[int]] = None):
        return RecordingAdapter(set_cookies, status_codes or (200,))

    return make
