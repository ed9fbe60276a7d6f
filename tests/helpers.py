"""Shared test helpers for mocked HTTP sessions."""

from unittest.mock import AsyncMock


def create_async_response(status=200, json_data=None, text=""):
    """Create a mock async response usable as ``async with session.request(...)``."""
    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data if json_data is not None else {})
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=None)
    return resp


class RecordingSink:
    """Diagnostic sink that keeps every event for assertions."""

    def __init__(self):
        self.events = []

    def __call__(self, exchange, event, code):
        self.events.append((exchange, event, code))

    @property
    def codes(self):
        return [code for _, _, code in self.events]

    def messages(self):
        return [event for _, event, _ in self.events if isinstance(event, str)]


def attach(adapter, session):
    """Route the adapter's HTTP calls to ``session``."""
    adapter._ensure_session = AsyncMock(return_value=session)
    return session


def sent(session, index=0):
    """(method, url, kwargs) of the ``index``-th request."""
    call = session.request.call_args_list[index]
    method, url = call.args[:2]
    return method, url, call.kwargs
