import os
from pathlib import Path

# Session signing key
SECRET_KEY = os.getenv('SECRET_KEY', 'school-election-dev-key')

# JSON document holding every academic year's data
STORAGE_PATH = os.getenv('STORAGE_PATH', str(Path.cwd() / 'storage.json'))

# Used only when the store is created for the first time
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin123')
MIN_ADMIN_PASSWORD_LENGTH = int(os.getenv('MIN_ADMIN_PASSWORD_LENGTH', 5))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Admin sessions idle longer than this are logged out
SESSION_TIMEOUT_SECONDS = int(os.getenv('SESSION_TIMEOUT', 1800))
