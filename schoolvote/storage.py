import copy
import json
import logging
import os
import tempfile
import threading
import time
from contextlib import contextmanager

from werkzeug.security import generate_password_hash

from .errors import StorageError

logger = logging.getLogger(__name__)

COLLECTIONS = (
    'students',
    'classes',
    'dorms',
    'posts',
    'candidates',
    'nominations',
    'votes',
    'logs',
)

DEFAULT_YEAR = 'default'


class DirectoryStore:
    """Single JSON document holding every collection and setting.

    Collections are scoped by the current academic year so each year's data
    stays isolated. All reads and writes go through ``transaction()``, which
    holds a lock shared by every store opened on the same file.
    """

    _locks = {}
    _locks_guard = threading.Lock()

    def __init__(self, storage_path, admin_password='admin123'):
        self.storage_path = str(storage_path)
        self.admin_password = admin_password
        key = os.path.abspath(self.storage_path)
        with DirectoryStore._locks_guard:
            self._lock = DirectoryStore._locks.setdefault(key, threading.RLock())
        self._depth = 0
        self._dirty = False
        self.data = None

    def _default_data(self):
        return {
            'settings': {
                'admin_password': generate_password_hash(self.admin_password),
                'academic_year': DEFAULT_YEAR,
                'deadline': None,
                'results_published': False,
            },
            'created_at': time.time(),
            'years': {},
        }

    def _load_storage(self):
        try:
            with open(self.storage_path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info('Creating new directory store at %s', self.storage_path)
            data = self._default_data()
            self.data = data
            self._save()
        except (OSError, ValueError) as e:
            raise StorageError(f'Directory store unreadable: {e}') from e
        settings = data.setdefault('settings', {})
        if 'admin_password' not in settings:
            settings['admin_password'] = generate_password_hash(self.admin_password)
            self._dirty = True
        settings.setdefault('academic_year', DEFAULT_YEAR)
        settings.setdefault('deadline', None)
        settings.setdefault('results_published', False)
        data.setdefault('years', {})
        self.data = data

    def _save(self):
        directory = os.path.dirname(os.path.abspath(self.storage_path))
        fd, tmp_path = tempfile.mkstemp(prefix='.storage-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(self.data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.storage_path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f'Directory store write failed: {e}') from e

    @contextmanager
    def transaction(self):
        """Lock the store, load it fresh and save once on success.

        Nested transactions join the outer one. If the block raises, nothing
        is written.
        """
        with self._lock:
            outer = self._depth == 0
            if outer:
                self._dirty = False
                self._load_storage()
            self._depth += 1
            try:
                yield self
                if outer and self._dirty:
                    self._save()
            finally:
                self._depth -= 1
                if outer:
                    self._dirty = False

    def _year_data(self, year=None):
        year = year or self.data['settings']['academic_year']
        return self.data['years'].setdefault(year, {})

    def get(self, collection, year=None):
        """Return a copy of the records of ``collection`` for the current year."""
        if collection not in COLLECTIONS:
            raise KeyError(f'Unknown collection: {collection}')
        with self.transaction():
            return copy.deepcopy(self._year_data(year).get(collection, []))

    def put(self, collection, records, year=None):
        """Replace ``collection`` for the current year."""
        if collection not in COLLECTIONS:
            raise KeyError(f'Unknown collection: {collection}')
        with self.transaction():
            self._year_data(year)[collection] = copy.deepcopy(list(records))
            self._dirty = True

    def get_setting(self, key):
        with self.transaction():
            return self.data['settings'].get(key)

    def set_setting(self, key, value):
        with self.transaction():
            self.data['settings'][key] = value
            self._dirty = True

    def years(self):
        with self.transaction():
            return list(self.data['years'].keys())
