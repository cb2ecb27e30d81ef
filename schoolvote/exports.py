import csv
import io

from .audit import add_log
from .errors import NotFoundError, ValidationError

FILTER_TYPES = ('class', 'dorm', 'post')
CSV_HEADER = ['Admission', 'Name', 'Position', 'VotedFor', 'Time']


def filtered_votes(store, filter_type, value):
    """Votes joined with their voter, filtered by class, dorm or post (case-insensitive).

    Votes whose student record is gone are left out.
    """
    if filter_type not in FILTER_TYPES:
        raise ValidationError(f"Filter must be one of: {', '.join(FILTER_TYPES)}")
    value = (value or '').strip().lower()
    students = {s['adm']: s for s in store.get('students')}

    rows = []
    for vote in store.get('votes'):
        student = students.get(vote['adm'])
        if student is None:
            continue
        if filter_type == 'post':
            field = vote['post']
        else:
            field = student[filter_type]
        if field.lower() == value:
            rows.append({
                'adm': vote['adm'],
                'name': vote.get('name') or student['name'],
                'post': vote['post'],
                'voted_for': vote['voted_for'],
                'time': vote['time'],
                'class': student['class'],
                'dorm': student['dorm'],
            })
    if not rows:
        raise NotFoundError('No data found for this filter.')
    return rows


def votes_csv(store, filter_type, value):
    rows = filtered_votes(store, filter_type, value)
    si = io.StringIO()
    cw = csv.writer(si)
    cw.writerow(CSV_HEADER)
    for r in rows:
        cw.writerow([r['adm'], r['name'], r['post'], r['voted_for'], r['time']])
    add_log(store, 'export', f'CSV export: {filter_type}={value} ({len(rows)} rows)')
    return si.getvalue()
