import logging
import time

from .audit import add_log
from .errors import AuthorizationError, DuplicateError, ValidationError
from .models import find_by_name

logger = logging.getLogger(__name__)


def clean(value):
    return str(value or '').strip()


class Registrar:
    """Student registration and login against the directory store."""

    def __init__(self, store):
        self.store = store

    def register(self, adm, name, class_name, dorm, photo=''):
        adm, name = clean(adm), clean(name)
        class_name, dorm = clean(class_name), clean(dorm)
        if not adm or not name or not class_name or not dorm:
            raise ValidationError('Please fill in all fields.')

        with self.store.transaction():
            if find_by_name(self.store.get('classes'), class_name) is None:
                raise ValidationError(f'Unknown class: {class_name}')
            if find_by_name(self.store.get('dorms'), dorm) is None:
                raise ValidationError(f'Unknown dorm: {dorm}')

            students = self.store.get('students')
            if any(s['adm'] == adm for s in students):
                raise DuplicateError('A student with this admission number is already registered.')

            student = {
                'adm': adm,
                'name': name,
                'class': class_name,
                'dorm': dorm,
                'photo': photo or '',
                'registered_at': time.time(),
            }
            students.append(student)
            self.store.put('students', students)
            add_log(self.store, 'register', f'Student registered: {name} ({adm})', adm=adm, name=name)
        return student

    def login(self, adm, name, class_name, dorm):
        """Match all four identity fields; the name is compared case-insensitively."""
        adm, name = clean(adm), clean(name)
        class_name, dorm = clean(class_name), clean(dorm)
        with self.store.transaction():
            student = next(
                (s for s in self.store.get('students')
                 if s['adm'] == adm
                 and s['name'].lower() == name.lower()
                 and s['class'] == class_name
                 and s['dorm'] == dorm),
                None,
            )
            if student is None:
                logger.warning('Failed student login for %s', adm)
                raise AuthorizationError('Invalid login. Please check your details.')
            add_log(self.store, 'login', f"Student logged in: {student['name']} ({adm})", adm=adm)
        return student

    def find(self, adm):
        if not adm:
            return None
        return next((s for s in self.store.get('students') if s['adm'] == adm), None)

    def all(self):
        return self.store.get('students')
