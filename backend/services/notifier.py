"""
Change Notifier - Socket.IO fan-out of record changes

Clients do not merge these payloads incrementally; any disaster_updated
event makes them re-fetch the full list.
"""
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

DISASTER_UPDATED = 'disaster_updated'
NEW_REPORT = 'new_report'
REPORT_UPDATED = 'report_updated'


class ChangeNotifier:
    """Broadcasts change events to every connected client"""

    def __init__(self, socketio):
        """
        Args:
            socketio: flask_socketio.SocketIO instance
        """
        self.socketio = socketio

    def _emit(self, event: str, payload: Any):
        # A failed broadcast must never undo or fail a committed write
        try:
            self.socketio.emit(event, payload)
            logger.debug(f"Emitted {event}")
        except Exception as e:
            logger.error(f"Failed to emit {event}: {e}")

    def disaster_changed(self, action: str, data: Dict):
        self._emit(DISASTER_UPDATED, {'action': action, 'data': data})

    def report_created(self, report: Dict):
        self._emit(NEW_REPORT, report)

    def report_updated(self, report: Dict):
        self._emit(REPORT_UPDATED, report)
