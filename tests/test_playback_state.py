import json
from datetime import datetime, timezone

from webplayer_tray.playback_state import (
    READ_STATE_SCRIPT,
    RESTORE_MAX_ATTEMPTS,
    RESTORE_POLL_INTERVAL_MS,
    PlaybackState,
    PlaybackStateStore,
    build_restore_script,
    normalize_record,
    utc_timestamp,
)

NOW = datetime(2026, 10, 19, 8, 30, 15, tzinfo=timezone.utc)


def test_normalize_record_fills_defaults_and_drops_extras():
    state = normalize_record({'id': 'x', 'extra': 1})
    assert json.loads(state.to_json()) == {'id': 'x', 'time': 0, 'paused': True}


def test_normalize_record_drops_saved_at():
    state = normalize_record({
        'id': '#/song?id=1', 'time': 42.5, 'paused': False,
        'saved_at': '2026-10-19T08:30:15Z',
    })
    assert state == PlaybackState(id='#/song?id=1', time=42.5, paused=False)


def test_normalize_record_rejects_wrong_types():
    state = normalize_record({'id': 7, 'time': '12', 'paused': 'no'})
    assert state == PlaybackState(id='', time=0.0, paused=True)


def test_normalize_record_does_not_take_bool_as_time():
    assert normalize_record({'time': True}).time == 0.0


def test_playback_state_time_is_never_negative():
    assert PlaybackState(id='a', time=-3).time == 0.0
    assert normalize_record({'time': -10}).time == 0.0


def test_utc_timestamp_is_iso8601_utc():
    assert utc_timestamp(NOW) == '2026-10-19T08:30:15Z'


def test_save_capture_injects_saved_at(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')

    assert store.save_capture('{"id":"/","time":12.5,"paused":false}', now=NOW) is True
    raw = store.path.read_text(encoding='utf-8')
    assert ' ' not in raw
    assert json.loads(raw) == {
        'id': '/', 'time': 12.5, 'paused': False, 'saved_at': '2026-10-19T08:30:15Z',
    }


def test_save_capture_clamps_negative_time(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')

    store.save_capture('{"id":"a","time":-5,"paused":true}', now=NOW)

    record = json.loads(store.path.read_text(encoding='utf-8'))
    assert record['time'] == 0
    assert record['saved_at'] == '2026-10-19T08:30:15Z'


def test_save_capture_overwrites_previous_record(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')
    store.save_capture('{"id":"a","time":1,"paused":true}', now=NOW)
    store.save_capture('{"id":"b","time":2,"paused":true}', now=NOW)

    assert json.loads(store.path.read_text(encoding='utf-8'))['id'] == 'b'


def test_capture_twice_differs_only_in_saved_at(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')
    result = '{"id":"#/song?id=7","time":30,"paused":false}'

    store.save_capture(result, now=NOW)
    first = json.loads(store.path.read_text(encoding='utf-8'))
    store.save_capture(result, now=datetime(2026, 10, 19, 8, 30, 19, tzinfo=timezone.utc))
    second = json.loads(store.path.read_text(encoding='utf-8'))

    assert first.pop('saved_at') != second.pop('saved_at')
    assert first == second


def test_save_capture_skips_empty_result(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')

    assert store.save_capture(None) is False
    assert store.save_capture('') is False
    assert not store.path.exists()


def test_save_capture_writes_malformed_result_verbatim(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')

    assert store.save_capture('not json', now=NOW) is True
    assert store.path.read_text(encoding='utf-8') == 'not json'


def test_save_capture_writes_non_object_json_verbatim(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')
    store.save_capture('[1, 2]', now=NOW)
    assert store.path.read_text(encoding='utf-8') == '[1, 2]'


def test_save_capture_keeps_unicode_readable(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')
    store.save_capture(json.dumps({'id': '网易云音乐', 'time': 1, 'paused': True}), now=NOW)
    assert '网易云音乐' in store.path.read_text(encoding='utf-8')


def test_save_capture_reports_write_failure(tmp_path):
    blocker = tmp_path / 'blocker'
    blocker.write_text('file, not a directory', encoding='utf-8')
    store = PlaybackStateStore(blocker / 'player_state.json')

    assert store.save_capture('{"id":"a"}', now=NOW) is False


def test_load_returns_none_without_record(tmp_path):
    assert PlaybackStateStore(tmp_path / 'missing.json').load() is None


def test_load_returns_none_for_corrupt_record(tmp_path):
    path = tmp_path / 'player_state.json'
    path.write_text('not json', encoding='utf-8')
    assert PlaybackStateStore(path).load() is None

    path.write_text('[1, 2, 3]', encoding='utf-8')
    assert PlaybackStateStore(path).load() is None


def test_load_round_trips_captured_state(tmp_path):
    store = PlaybackStateStore(tmp_path / 'player_state.json')
    store.save_capture('{"id":"#/song?id=9","time":75.25,"paused":false}', now=NOW)

    assert store.load() == PlaybackState(id='#/song?id=9', time=75.25, paused=False)


def test_read_script_returns_json_string_with_fallback():
    assert 'JSON.stringify' in READ_STATE_SCRIPT
    assert "document.querySelector('audio')" in READ_STATE_SCRIPT
    assert "{id: 'unknown', time: 0, paused: true}" in READ_STATE_SCRIPT
    assert 'getCurrentTime' in READ_STATE_SCRIPT
    assert 'isPlaying' in READ_STATE_SCRIPT


def test_restore_script_embeds_normalized_state():
    script = build_restore_script(PlaybackState(id='x', time=500, paused=False))

    assert script.rstrip().endswith('})({"id":"x","time":500,"paused":false});')
    assert '__STATE__' not in script


def test_restore_script_clamps_to_duration_and_bounds_polling():
    script = build_restore_script(PlaybackState())

    assert 'Math.min(target, duration)' in script
    assert 'attempts >= %d' % RESTORE_MAX_ATTEMPTS in script
    assert '}, %d);' % RESTORE_POLL_INTERVAL_MS in script
    assert RESTORE_MAX_ATTEMPTS == 20
    assert RESTORE_POLL_INTERVAL_MS == 500


def test_restore_script_has_player_object_fallback():
    script = build_restore_script(PlaybackState(time=3))
    assert 'window.player.seek(state.time)' in script
    assert 'window.player.play()' in script
