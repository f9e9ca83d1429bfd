"""Window, tray and browser glue around the embedded player."""

import logging
from pathlib import Path

from PySide6.QtCore import Qt, QUrl
from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QFont, QIcon, QPainter, QPen, QPixmap
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineProfile, QWebEngineSettings
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon, QVBoxLayout, QWidget

from .config import APP_NAME, HTTP_CACHE_MAX_BYTES, AppConfig, KeyValueStore, Settings, save_settings
from .media_keys import MediaCommand, MediaCommandDispatcher

logger = logging.getLogger(__name__)

APP_TITLE = 'Web Player'
APP_ICON_PATH = Path(__file__).parent / 'favicon.ico'


# ============================================================================
# GUI HELPERS
# ============================================================================

def load_app_icon() -> QIcon:
    """favicon.ico next to the package, else a painted music-note circle."""
    if APP_ICON_PATH.exists():
        return QIcon(str(APP_ICON_PATH))
    size = 32
    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.GlobalColor.transparent)
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    margin = 2
    painter.setBrush(QBrush(QColor('#e60026')))
    painter.setPen(Qt.PenStyle.NoPen)
    painter.drawEllipse(margin, margin, size - 2 * margin, size - 2 * margin)
    font = QFont()
    font.setPixelSize(int(size * 0.52))
    font.setBold(True)
    painter.setFont(font)
    painter.setPen(QPen(QColor('white')))
    painter.drawText(pixmap.rect(), Qt.AlignmentFlag.AlignCenter, '♫')
    painter.end()
    return QIcon(pixmap)


def is_allowed_url(url: QUrl, allowed_host: str) -> bool:
    return url.isValid() and url.host() == allowed_host


def build_web_view(config: AppConfig, parent=None) -> QWebEngineView:
    """Persistent profile + page + view, kept on the player's host."""
    profile = QWebEngineProfile(APP_NAME, parent or QApplication.instance())
    profile.setPersistentStoragePath(str(config.storage_dir))
    profile.setCachePath(str(config.cache_dir))
    profile.setHttpCacheType(QWebEngineProfile.HttpCacheType.DiskHttpCache)
    profile.setHttpCacheMaximumSize(HTTP_CACHE_MAX_BYTES)
    profile.setPersistentCookiesPolicy(QWebEngineProfile.PersistentCookiesPolicy.ForcePersistentCookies)
    profile.setHttpUserAgent(config.user_agent)

    settings = profile.settings()
    settings.setAttribute(QWebEngineSettings.WebAttribute.JavascriptEnabled, True)
    settings.setAttribute(QWebEngineSettings.WebAttribute.LocalStorageEnabled, True)
    settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessRemoteUrls, True)
    settings.setAttribute(QWebEngineSettings.WebAttribute.PluginsEnabled, True)
    settings.setAttribute(QWebEngineSettings.WebAttribute.PlaybackRequiresUserGesture, False)

    view = QWebEngineView()
    view.setPage(QWebEnginePage(profile, view))
    player_url = QUrl(config.player_url)

    def guard(url):
        if not is_allowed_url(url, config.allowed_host):
            logger.debug('Redirecting %s back to the player page', url.toString())
            view.load(player_url)

    view.urlChanged.connect(guard)
    view.load(player_url)
    return view


# ============================================================================
# MAIN WINDOW
# ============================================================================

class MainWindow(QWidget):
    def __init__(self, view: QWebEngineView, settings: Settings, settings_store: KeyValueStore):
        super().__init__()
        self.view = view
        self.settings = settings
        self.settings_store = settings_store

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(view)

        self.resize(1200, 800)
        self.setWindowTitle(APP_TITLE)
        self.setWindowIcon(load_app_icon())

    # ------------------------------------------------------------------
    def set_close_to_tray(self, close_to_tray: bool):
        self.settings.close_to_tray = close_to_tray
        self.save_settings()

    def save_settings(self):
        try:
            save_settings(self.settings_store, self.settings)
        except OSError as e:
            logger.warning('Could not save settings: %s', e)

    def show_and_raise(self):
        self.showNormal()
        self.raise_()
        self.activateWindow()

    # ------------------------------------------------------------------
    def closeEvent(self, event):
        if self.settings.close_to_tray:
            event.ignore()
            self.hide()
        else:
            self.save_settings()
            event.accept()
            QApplication.instance().quit()


# ============================================================================
# SYSTEM TRAY
# ============================================================================

class TrayApp(QSystemTrayIcon):
    def __init__(self, window: MainWindow, dispatcher: MediaCommandDispatcher):
        super().__init__(load_app_icon(), window)
        self.window = window
        self.dispatcher = dispatcher

        self._build_menu()
        self.activated.connect(self._on_activated)
        self.setToolTip(APP_TITLE)
        self.show()

    # ------------------------------------------------------------------
    def _build_menu(self):
        self._menu = QMenu()

        open_action = self._menu.addAction('Open')
        open_action.triggered.connect(self.window.show_and_raise)
        self._menu.addSeparator()

        for label, command in (
            ('Play/Pause', MediaCommand.PLAY_PAUSE),
            ('Previous', MediaCommand.PREVIOUS),
            ('Next', MediaCommand.NEXT),
        ):
            action = self._menu.addAction(label)
            action.triggered.connect(lambda _=False, c=command: self.dispatcher.dispatch(c))
        self._menu.addSeparator()

        behaviour_menu = self._menu.addMenu('Close behaviour')
        group = QActionGroup(behaviour_menu)
        group.setExclusive(True)
        self._tray_action = QAction('Hide to tray', behaviour_menu)
        self._exit_action = QAction('Exit directly', behaviour_menu)
        for action in (self._tray_action, self._exit_action):
            action.setCheckable(True)
            group.addAction(action)
            behaviour_menu.addAction(action)
        if self.window.settings.close_to_tray:
            self._tray_action.setChecked(True)
        else:
            self._exit_action.setChecked(True)
        self._tray_action.toggled.connect(self._on_close_behaviour_toggled)
        self._menu.addSeparator()

        quit_action = self._menu.addAction('Quit')
        quit_action.triggered.connect(QApplication.instance().quit)

        self.setContextMenu(self._menu)

    # ------------------------------------------------------------------
    def _on_close_behaviour_toggled(self, to_tray: bool):
        self.window.set_close_to_tray(to_tray)

    def _on_activated(self, reason):
        if reason not in (QSystemTrayIcon.ActivationReason.Trigger,
                          QSystemTrayIcon.ActivationReason.DoubleClick):
            return
        if not self.window.isVisible() or self.window.isMinimized():
            self.window.show_and_raise()
        else:
            self.window.hide()
