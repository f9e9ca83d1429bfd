"""Asynchronous script evaluation against the embedded page."""

import logging

logger = logging.getLogger(__name__)


class ScriptRequest:
    """One pending evaluation. Completes at most once, never after cancel()."""

    def __init__(self, on_result=None):
        self._on_result = on_result
        self.done = False
        self.cancelled = False

    def complete(self, value):
        if self.done or self.cancelled:
            return
        self.done = True
        if self._on_result is not None:
            self._on_result(value)

    def cancel(self):
        self.cancelled = True
        self._on_result = None


class PageBridge:
    """Wraps a QWebEnginePage (or anything with a compatible runJavaScript)."""

    def __init__(self, page):
        self._page = page
        self._pending = set()
        self.closed = False

    def evaluate(self, script: str, on_result) -> ScriptRequest:
        request = ScriptRequest(on_result)
        if self.closed:
            request.cancel()
            return request
        self._pending.add(request)

        def finished(value, request=request):
            self._pending.discard(request)
            request.complete(value)

        self._page.runJavaScript(script, 0, finished)
        return request

    def execute(self, script: str):
        if self.closed:
            return
        self._page.runJavaScript(script)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def close(self):
        self.closed = True
        for request in list(self._pending):
            request.cancel()
        if self._pending:
            logger.debug('Dropped %d pending script evaluation(s)', len(self._pending))
        self._pending.clear()
