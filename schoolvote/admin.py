import logging

from werkzeug.security import check_password_hash, generate_password_hash

from .audit import add_log
from .ballot import deadline_status, parse_deadline
from .errors import AuthorizationError, DuplicateError, ValidationError
from .models import (
    POST_CATEGORIES,
    SCHOOL_WIDE,
    candidate_scope,
    find_by_name,
    new_candidate,
    new_named,
    new_post,
)

logger = logging.getLogger(__name__)


class AdminConsole:
    """Admin-only management of the directory store.

    Callers are expected to have passed ``authenticate`` first; the HTTP layer
    enforces that through the admin session.
    """

    def __init__(self, store, min_password_length=5):
        self.store = store
        self.min_password_length = min_password_length

    # ------------------ AUTH ------------------
    def authenticate(self, password):
        stored = self.store.get_setting('admin_password')
        if not password or not stored or not check_password_hash(stored, password):
            logger.warning('Failed admin login')
            raise AuthorizationError('Wrong password.')
        add_log(self.store, 'admin', 'Admin logged in')
        return True

    def logout(self):
        add_log(self.store, 'admin', 'Admin logged out')

    def change_password(self, current, new):
        if not current or not new:
            raise ValidationError('Please fill in both fields.')
        with self.store.transaction():
            stored = self.store.get_setting('admin_password')
            if not check_password_hash(stored, current):
                raise AuthorizationError('Current password is incorrect.')
            if len(new) < self.min_password_length:
                raise ValidationError(
                    f'New password must be at least {self.min_password_length} characters.'
                )
            self.store.set_setting('admin_password', generate_password_hash(new))
            add_log(self.store, 'admin', 'Admin password changed')

    # ------------------ CLASSES / DORMS / POSTS ------------------
    def _add_named(self, collection, log_type, label, record):
        if not record['name']:
            raise ValidationError(f'{label} name is required.')
        with self.store.transaction():
            records = self.store.get(collection)
            if find_by_name(records, record['name']) is not None:
                raise DuplicateError(f'{label} already exists.')
            records.append(record)
            self.store.put(collection, records)
            add_log(self.store, log_type, f"Added {label.lower()}: {record['name']}")
        return record

    def add_class(self, name):
        return self._add_named('classes', 'class', 'Class', new_named((name or '').strip()))

    def add_dorm(self, name):
        return self._add_named('dorms', 'dorm', 'Dorm', new_named((name or '').strip()))

    def add_post(self, name, category=SCHOOL_WIDE):
        category = category or SCHOOL_WIDE
        if category not in POST_CATEGORIES:
            raise ValidationError(f"Post category must be one of: {', '.join(POST_CATEGORIES)}")
        return self._add_named('posts', 'post', 'Post', new_post((name or '').strip(), category))

    def _delete_named(self, collection, field, name, cascade, message):
        """Remove a name-keyed record and everything in ``cascade`` referencing it.

        Returns the number of dependent records dropped per collection, or
        ``None`` when nothing is named ``name``.
        """
        with self.store.transaction():
            records = self.store.get(collection)
            if find_by_name(records, name) is None:
                return None
            self.store.put(collection, [r for r in records if r['name'] != name])
            dropped = {}
            for dependent in cascade:
                existing = self.store.get(dependent)
                kept = [r for r in existing if r.get(field) != name]
                dropped[dependent] = len(existing) - len(kept)
                self.store.put(dependent, kept)
            add_log(self.store, field, message, **dropped)
        return dropped

    def delete_class(self, name):
        return self._delete_named(
            'classes', 'class', name, ('candidates', 'nominations'), f'Deleted class: {name}'
        )

    def delete_dorm(self, name):
        return self._delete_named(
            'dorms', 'dorm', name, ('candidates', 'nominations'), f'Deleted dorm: {name}'
        )

    def delete_post(self, name):
        return self._delete_named(
            'posts',
            'post',
            name,
            ('candidates', 'nominations', 'votes'),
            f'Deleted post: {name} (removed related candidates, nominations & votes)',
        )

    # ------------------ CANDIDATES ------------------
    def add_candidate(self, name, post, class_name, dorm, manifesto='', photo=''):
        name, post = (name or '').strip(), (post or '').strip()
        class_name, dorm = (class_name or '').strip(), (dorm or '').strip()
        if not name or not post or not class_name or not dorm:
            raise ValidationError('Fill all fields')

        with self.store.transaction():
            post_record = find_by_name(self.store.get('posts'), post)
            if post_record is None:
                raise ValidationError(f'Unknown post: {post}')
            if find_by_name(self.store.get('classes'), class_name) is None:
                raise ValidationError(f'Unknown class: {class_name}')
            if find_by_name(self.store.get('dorms'), dorm) is None:
                raise ValidationError(f'Unknown dorm: {dorm}')

            # the same name may stand for a per-class or per-dorm post in another class or dorm
            category = post_record.get('category', SCHOOL_WIDE)
            scope = candidate_scope(category, class_name, dorm)
            candidates = self.store.get('candidates')
            if any(
                c['name'] == name
                and c['post'] == post
                and candidate_scope(category, c['class'], c['dorm']) == scope
                for c in candidates
            ):
                raise DuplicateError(f'{name} is already a candidate for {post}')
            candidate = new_candidate(
                name, post, class_name, dorm, (manifesto or '').strip() or 'Added by admin', photo
            )
            candidates.append(candidate)
            self.store.put('candidates', candidates)
            add_log(self.store, 'candidate', f'Admin added candidate {name} for {post}')
        return candidate

    def delete_candidate(self, candidate_id):
        """Remove one candidate; their recorded votes stay and are skipped at tally time."""
        with self.store.transaction():
            candidates = self.store.get('candidates')
            removed = next((c for c in candidates if c['id'] == candidate_id), None)
            if removed is None:
                return None
            self.store.put('candidates', [c for c in candidates if c['id'] != candidate_id])
            add_log(self.store, 'candidate', f"Deleted candidate {removed['name']} ({removed['post']})")
        return removed

    # ------------------ SETTINGS ------------------
    def set_academic_year(self, year):
        year = (year or '').strip()
        if not year:
            raise ValidationError('Enter academic year.')
        with self.store.transaction():
            self.store.set_setting('academic_year', year)
            add_log(self.store, 'year', f'Academic year set to {year}')
        return year

    def set_deadline(self, deadline):
        parsed = parse_deadline((deadline or '').strip())
        if parsed is None:
            raise ValidationError('Please select a date and time.')
        with self.store.transaction():
            self.store.set_setting('deadline', parsed.isoformat())
            add_log(self.store, 'deadline', f'Voting deadline set to {parsed.isoformat()}')
        return deadline_status(parsed.isoformat())

    def clear_deadline(self):
        with self.store.transaction():
            self.store.set_setting('deadline', None)
            add_log(self.store, 'deadline', 'Voting deadline cleared')

    def publish_results(self):
        with self.store.transaction():
            self.store.set_setting('results_published', True)
            add_log(self.store, 'results', 'Results published')

    def unpublish_results(self):
        with self.store.transaction():
            self.store.set_setting('results_published', False)
            add_log(self.store, 'results', 'Results unpublished')

    def overview(self):
        with self.store.transaction():
            counts = {
                name: len(self.store.get(name))
                for name in ('students', 'classes', 'dorms', 'posts', 'candidates', 'nominations', 'votes')
            }
            return {
                'academic_year': self.store.get_setting('academic_year'),
                'results_published': self.store.get_setting('results_published'),
                'deadline': deadline_status(self.store.get_setting('deadline')),
                'counts': counts,
            }
