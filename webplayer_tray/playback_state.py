"""
Playback state snapshot: the persisted record and the page scripts that
read it from, and replay it into, the embedded player.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

RESTORE_POLL_INTERVAL_MS = 500
RESTORE_MAX_ATTEMPTS = 20

# Returns a JSON string, never an object: the evaluation result is opaque.
READ_STATE_SCRIPT = r"""
(function(){
    try {
        var id = location.hash || location.pathname || document.title || 'unknown';
        var audio = document.querySelector('audio');
        var time = 0;
        var paused = true;
        if (audio) {
            time = audio.currentTime || 0;
            paused = audio.paused;
        } else {
            if (window.player && window.player.getCurrentTime) {
                try { time = window.player.getCurrentTime(); } catch(e) {}
            }
            if (window.player && window.player.isPlaying) {
                try { paused = !window.player.isPlaying(); } catch(e) {}
            }
        }
        return JSON.stringify({id: String(id), time: Math.max(0, Number(time) || 0), paused: Boolean(paused)});
    } catch(e) {
        return JSON.stringify({id: 'unknown', time: 0, paused: true});
    }
})();
"""

RESTORE_STATE_TEMPLATE = r"""
(function(state){
    try {
        var audio = document.querySelector('audio');
        if (audio && state && typeof state.time === 'number') {
            var attempts = 0;
            var apply = function() {
                attempts++;
                try {
                    if (audio.readyState > 0) {
                        var target = state.time;
                        var duration = audio.duration;
                        if (isFinite(duration) && duration > 0) {
                            target = Math.min(target, duration);
                        }
                        audio.currentTime = target;
                        if (!state.paused) {
                            var pending = audio.play();
                            if (pending && pending.catch) pending.catch(function(){});
                        }
                        return true;
                    }
                } catch(e) {}
                return false;
            };
            if (!apply()) {
                var timer = setInterval(function(){
                    if (apply() || attempts >= __MAX_ATTEMPTS__) clearInterval(timer);
                }, __INTERVAL_MS__);
            }
        } else if (window.player && window.player.seek) {
            try {
                window.player.seek(state.time);
                if (!state.paused && window.player.play) window.player.play();
            } catch(e) {}
        }
    } catch(e) {}
})(__STATE__);
"""


@dataclass
class PlaybackState:
    id: str = ''
    time: float = 0.0
    paused: bool = True

    def __post_init__(self):
        if self.time < 0:
            self.time = 0.0

    def to_json(self) -> str:
        return json.dumps(asdict(self), separators=(',', ':'), ensure_ascii=False)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def normalize_record(obj: dict) -> PlaybackState:
    """Projects a stored record onto id/time/paused; everything else is dropped."""
    record_id = obj.get('id')
    time = obj.get('time')
    if not isinstance(time, (int, float)) or isinstance(time, bool) or not math.isfinite(time):
        time = 0.0
    paused = obj.get('paused')
    return PlaybackState(
        id=record_id if isinstance(record_id, str) else '',
        time=float(time),
        paused=paused if isinstance(paused, bool) else True,
    )


def build_restore_script(state: PlaybackState) -> str:
    return (
        RESTORE_STATE_TEMPLATE
        .replace('__MAX_ATTEMPTS__', str(RESTORE_MAX_ATTEMPTS))
        .replace('__INTERVAL_MS__', str(RESTORE_POLL_INTERVAL_MS))
        .replace('__STATE__', state.to_json())
    )


# ============================================================================
# PERSISTED RECORD
# ============================================================================

class PlaybackStateStore:
    """The single on-disk snapshot; every write replaces the whole file."""

    def __init__(self, path):
        self.path = Path(path)

    def save_capture(self, result, now: Optional[datetime] = None) -> bool:
        if not result:
            return False
        text = result if isinstance(result, str) else str(result)

        try:
            obj = json.loads(text)
        except ValueError:
            obj = None

        if isinstance(obj, dict):
            time = obj.get('time')
            if isinstance(time, (int, float)) and not isinstance(time, bool) and time < 0:
                obj['time'] = 0
            obj['saved_at'] = utc_timestamp(now)
            payload = json.dumps(obj, separators=(',', ':'), ensure_ascii=False)
        else:
            logger.debug('Capture result is not a JSON object, storing it as-is')
            payload = text

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload, encoding='utf-8')
        except OSError as e:
            logger.warning('Could not write %s: %s', self.path, e)
            return False
        return True

    def load(self) -> Optional[PlaybackState]:
        """Returns the last snapshot, or None when there is nothing usable."""
        if not self.path.exists():
            return None
        try:
            obj = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.debug('Ignoring unreadable %s: %s', self.path, e)
            return None
        if not isinstance(obj, dict):
            return None
        return normalize_record(obj)
