import logging
from datetime import datetime

logger = logging.getLogger(__name__)


def add_log(store, log_type, message, **extra):
    """Prepend an audit entry to the current year's log (newest first)."""
    entry = {
        'type': log_type,
        'message': message,
        'time': datetime.now().isoformat(timespec='seconds'),
    }
    entry.update(extra)
    with store.transaction():
        logs = store.get('logs')
        logs.insert(0, entry)
        store.put('logs', logs)
    logger.info('[%s] %s', log_type, message)
    return entry


def recent_logs(store, limit=None):
    logs = store.get('logs')
    return logs[:limit] if limit else logs
