"""
Web Player Tray
Desktop shell around a web music player: system tray, media-key relay,
and playback position kept across page reloads.
"""

import os
import sys

from PySide6.QtWidgets import QApplication

from .config import APP_NAME, JsonKeyValueStore, load_config, load_settings
from .logging_config import setup_logging
from .media_keys import MediaCommandDispatcher
from .page_bridge import PageBridge
from .playback_state import PlaybackStateStore
from .shell import MainWindow, TrayApp, build_web_view
from .state_sync import PlaybackStateSync

CHROMIUM_FLAGS = '--disable-gpu --no-sandbox'


def main(argv=None) -> int:
    config = load_config()
    logger = setup_logging(config)
    logger.info('Data directory: %s', config.data_dir)

    os.environ.setdefault('QTWEBENGINE_DISABLE_SANDBOX', '1')
    os.environ.setdefault('QTWEBENGINE_CHROMIUM_FLAGS', CHROMIUM_FLAGS)

    app = QApplication(sys.argv if argv is None else argv)
    app.setOrganizationName(APP_NAME)
    app.setApplicationName(APP_NAME)
    app.setQuitOnLastWindowClosed(False)  # the tray keeps the app alive

    settings_store = JsonKeyValueStore(config.settings_file)
    settings = load_settings(settings_store)

    view = build_web_view(config, app)
    window = MainWindow(view, settings, settings_store)
    tray = TrayApp(window, MediaCommandDispatcher())

    sync = PlaybackStateSync(
        PageBridge(view.page()),
        PlaybackStateStore(config.state_file),
        interval_ms=config.state_interval_ms,
    )
    view.loadFinished.connect(sync.on_load_finished)
    sync.start()

    def shutdown():
        sync.stop()
        window.save_settings()
        if tray.isVisible():
            tray.hide()
        logger.info('Shutting down')

    app.aboutToQuit.connect(shutdown)

    window.show()
    return app.exec()


if __name__ == '__main__':
    sys.exit(main())
