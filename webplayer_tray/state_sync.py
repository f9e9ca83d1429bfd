"""
Snapshot/restore loop.
Captures playback state from the page on a fixed cadence and replays the
last snapshot once the page finishes loading.
"""

import logging

from PySide6.QtCore import QTimer

from .config import DEFAULT_STATE_INTERVAL_MS
from .playback_state import READ_STATE_SCRIPT, build_restore_script

logger = logging.getLogger(__name__)


class PlaybackStateSync:
    IDLE = 'idle'
    CAPTURING = 'capturing'

    def __init__(self, bridge, store, interval_ms: int = DEFAULT_STATE_INTERVAL_MS, timer=None):
        self.bridge = bridge
        self.store = store
        self.interval_ms = interval_ms
        self.state = self.IDLE
        self._timer = timer if timer is not None else QTimer()
        self._timer.timeout.connect(self.capture)

    # ------------------------------------------------------------------
    def start(self):
        self._timer.setInterval(self.interval_ms)
        self._timer.start()
        logger.info('Playback state capture every %d ms -> %s', self.interval_ms, self.store.path)

    def stop(self):
        self._timer.stop()
        self.state = self.IDLE
        self.bridge.close()

    # ------------------------------------------------------------------
    def capture(self):
        self.state = self.CAPTURING
        request = self.bridge.evaluate(READ_STATE_SCRIPT, self._on_capture_result)
        if request.cancelled:
            self.state = self.IDLE
        return request

    def _on_capture_result(self, result):
        self.state = self.IDLE
        if self.store.save_capture(result):
            logger.debug('Playback state saved')

    # ------------------------------------------------------------------
    def on_load_finished(self, ok: bool) -> bool:
        """Replays the last snapshot into the page. Returns True if a script was sent."""
        if not ok:
            return False
        state = self.store.load()
        if state is None:
            return False
        logger.info('Restoring playback: id=%s time=%.1f paused=%s', state.id, state.time, state.paused)
        self.bridge.execute(build_restore_script(state))
        return True
