"""
Media command dispatch.
Relays play/pause/next/previous to whatever player currently owns audio:
MPRIS over the session bus first, synthetic media-key presses second.
"""

import enum
import logging
import platform

logger = logging.getLogger(__name__)

IS_WINDOWS = platform.system() == 'Windows'

MPRIS_PREFIX = 'org.mpris.MediaPlayer2.'
MPRIS_PATH = '/org/mpris/MediaPlayer2'
MPRIS_PLAYER_IFACE = 'org.mpris.MediaPlayer2.Player'


class MediaCommand(str, enum.Enum):
    PLAY_PAUSE = 'PlayPause'
    NEXT = 'Next'
    PREVIOUS = 'Previous'


# pynput Key attribute per command (XF86AudioPlay / XF86AudioNext / XF86AudioPrev)
MEDIA_KEYS = {
    MediaCommand.PLAY_PAUSE: 'media_play_pause',
    MediaCommand.NEXT: 'media_next',
    MediaCommand.PREVIOUS: 'media_previous',
}


def _session_bus():
    from pydbus import SessionBus
    return SessionBus()


def _keyboard_controller():
    from pynput.keyboard import Controller
    return Controller()


def _resolve_key(name):
    from pynput.keyboard import Key
    return getattr(Key, name)


# ============================================================================
# MPRIS BACKEND (SESSION BUS)
# ============================================================================

class MprisBackend:
    def __init__(self, bus_factory=None):
        self._bus_factory = bus_factory or _session_bus

    def find_first_service(self, bus=None):
        """Returns the first registered MPRIS service name, or None."""
        try:
            bus = bus or self._bus_factory()
            dbus = bus.get('.DBus')
            names = list(dbus.ListNames())
        except Exception as e:
            logger.debug('Session bus unavailable: %s', e)
            return None
        for name in names:
            if name.startswith(MPRIS_PREFIX):
                return name
        return None

    def send(self, command: MediaCommand) -> bool:
        try:
            bus = self._bus_factory()
        except Exception as e:
            logger.debug('Session bus unavailable: %s', e)
            return False
        service = self.find_first_service(bus)
        if not service:
            logger.debug('No MPRIS player registered on the session bus')
            return False
        try:
            player = bus.get(service, MPRIS_PATH)[MPRIS_PLAYER_IFACE]
            getattr(player, command.value)()
        except Exception as e:
            logger.debug('MPRIS %s on %s failed: %s', command.value, service, e)
            return False
        logger.debug('MPRIS %s sent to %s', command.value, service)
        return True


# ============================================================================
# SYNTHETIC KEY BACKEND (X11)
# ============================================================================

class KeySynthBackend:
    def __init__(self, controller_factory=None, key_resolver=None, supported=None):
        self._controller_factory = controller_factory or _keyboard_controller
        self._key_resolver = key_resolver or _resolve_key
        self.supported = (not IS_WINDOWS) if supported is None else supported
        self._controller = None

    def _get_controller(self):
        """One display connection per backend, opened on first use."""
        if self._controller is None:
            self._controller = self._controller_factory()
        return self._controller

    def send(self, command: MediaCommand) -> bool:
        if not self.supported:
            return False
        key_name = MEDIA_KEYS.get(command)
        if key_name is None:
            return False
        try:
            controller = self._get_controller()
            key = self._key_resolver(key_name)
            if not key:
                return False
            controller.press(key)
            controller.release(key)
        except Exception as e:
            logger.debug('Synthetic %s key failed: %s', key_name, e)
            # reopen on the next press
            self._controller = None
            return False
        logger.debug('Synthetic %s key sent', key_name)
        return True


# ============================================================================
# DISPATCHER
# ============================================================================

class MediaCommandDispatcher:
    """Tries each backend in order; the first one that accepts wins."""

    def __init__(self, backends=None):
        if backends is None:
            backends = [MprisBackend(), KeySynthBackend()]
        self.backends = list(backends)

    def dispatch(self, command) -> bool:
        command = MediaCommand(command)
        for backend in self.backends:
            if backend.send(command):
                return True
        logger.warning('%s: no media backend accepted the command', command.value)
        return False

