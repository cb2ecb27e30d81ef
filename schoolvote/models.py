import time
import uuid

SCHOOL_WIDE = 'school_wide'
PER_CLASS = 'per_class'
PER_DORM = 'per_dorm'

POST_CATEGORIES = (SCHOOL_WIDE, PER_CLASS, PER_DORM)

PENDING = 'pending'
REJECTED = 'rejected'


def new_named(name):
    """Record for a class, dorm or other name-keyed entry."""
    return {'name': name, 'created_at': time.time()}


def new_post(name, category=SCHOOL_WIDE):
    return {'name': name, 'category': category, 'created_at': time.time()}


def new_candidate(name, post, class_name, dorm, manifesto, photo='', nominated_by=None):
    return {
        'id': str(uuid.uuid4()),
        'name': name,
        'post': post,
        'class': class_name,
        'dorm': dorm,
        'manifesto': manifesto,
        'photo': photo or '',
        'approved': True,
        'nominated_by': nominated_by,
        'created_at': time.time(),
    }


def find_by_name(records, name):
    return next((r for r in records if r['name'] == name), None)


def candidate_scope(category, class_name, dorm):
    """Class or dorm a candidate stands in; ``None`` for school-wide posts."""
    if category == PER_CLASS:
        return class_name
    if category == PER_DORM:
        return dorm
    return None
