import logging
import time

from .audit import add_log
from .errors import Unauthenticated, ValidationError
from .models import PENDING, REJECTED, find_by_name, new_candidate

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('name', 'post', 'class', 'dorm', 'manifesto')


class NominationWorkflow:
    """Candidacy requests submitted by students and decided by the admin.

    Only pending nominations are stored. Approval turns a nomination into a
    candidate; rejection discards it.
    """

    def __init__(self, store):
        self.store = store

    def pending(self):
        return [n for n in self.store.get('nominations') if n.get('state', PENDING) == PENDING]

    def submit(self, student, fields, photo=''):
        if not student:
            raise Unauthenticated('Please log in first.')
        values = {key: str(fields.get(key) or '').strip() for key in REQUIRED_FIELDS}
        missing = [key for key, value in values.items() if not value]
        if missing:
            raise ValidationError(f"Please fill in all fields: {', '.join(missing)}")

        with self.store.transaction():
            if find_by_name(self.store.get('posts'), values['post']) is None:
                raise ValidationError(f"Unknown post: {values['post']}")
            if find_by_name(self.store.get('classes'), values['class']) is None:
                raise ValidationError(f"Unknown class: {values['class']}")
            if find_by_name(self.store.get('dorms'), values['dorm']) is None:
                raise ValidationError(f"Unknown dorm: {values['dorm']}")

            nominations = self.store.get('nominations')
            taken = {n['id'] for n in nominations}
            stamp = int(time.time() * 1000)
            nomination_id = f"{student['adm']}-{stamp}"
            while nomination_id in taken:
                stamp += 1
                nomination_id = f"{student['adm']}-{stamp}"

            nomination = {
                'id': nomination_id,
                'name': values['name'],
                'post': values['post'],
                'class': values['class'],
                'dorm': values['dorm'],
                'manifesto': values['manifesto'],
                'photo': photo or '',
                'approved': False,
                'state': PENDING,
                'submitted_by': student['adm'],
                'submitted_at': time.time(),
            }
            nominations.append(nomination)
            self.store.put('nominations', nominations)
            add_log(
                self.store,
                'nominate',
                f"Nomination submitted by {nomination['name']} for {nomination['post']}",
                adm=student['adm'],
            )
        return nomination

    def approve(self, nomination_id):
        """Move a pending nomination into the candidate set; ``None`` on a miss."""
        with self.store.transaction():
            nominations = self.store.get('nominations')
            nomination = next((n for n in nominations if n['id'] == nomination_id), None)
            if nomination is None:
                logger.debug('Approve ignored, no nomination %s', nomination_id)
                return None

            candidates = self.store.get('candidates')
            nominations.remove(nomination)
            candidate = new_candidate(
                nomination['name'],
                nomination['post'],
                nomination['class'],
                nomination['dorm'],
                nomination['manifesto'],
                photo=nomination.get('photo'),
                nominated_by=nomination.get('submitted_by'),
            )
            candidate['nomination_id'] = nomination['id']
            candidates.append(candidate)
            self.store.put('candidates', candidates)
            self.store.put('nominations', nominations)
            add_log(self.store, 'nomination', f"Approved: {candidate['name']} for {candidate['post']}")
        return candidate

    def reject(self, nomination_id):
        """Discard a pending nomination; ``None`` on a miss."""
        with self.store.transaction():
            nominations = self.store.get('nominations')
            nomination = next((n for n in nominations if n['id'] == nomination_id), None)
            if nomination is None:
                logger.debug('Reject ignored, no nomination %s', nomination_id)
                return None
            nominations.remove(nomination)
            self.store.put('nominations', nominations)
            add_log(self.store, 'nomination', f"Rejected: {nomination['name']} for {nomination['post']}")
        nomination['state'] = REJECTED
        return nomination
