import io
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

from flask import Flask, g, jsonify, render_template_string, request, send_file, session

from .admin import AdminConsole
from .audit import add_log, recent_logs
from .ballot import BallotEngine, deadline_status
from .errors import AuthorizationError, ElectionError, Unauthenticated
from .exports import filtered_votes, votes_csv
from .nominations import NominationWorkflow
from .storage import DirectoryStore
from .students import Registrar
from .tally import published_results

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object('schoolvote.config')

EXPORT_HTML = """<!doctype html><html><body class='p-3'><h2>Vote Results</h2>
<p>Filter: {{ filter_type }} = {{ value }}</p>
<table border='1' cellpadding='6' cellspacing='0'>
<tr><th>Adm</th><th>Name</th><th>Position</th><th>VotedFor</th><th>Time</th></tr>
{% for r in rows %}<tr><td>{{ r.adm }}</td><td>{{ r.name }}</td><td>{{ r.post }}</td><td>{{ r.voted_for }}</td><td>{{ r.time }}</td></tr>{% endfor %}
</table>
<script>window.print();</script></body></html>"""


def get_store():
    if 'store' not in g:
        g.store = DirectoryStore(app.config['STORAGE_PATH'], admin_password=app.config['ADMIN_PASSWORD'])
    return g.store


def payload():
    """JSON body if there is one, otherwise the submitted form."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def current_student():
    return Registrar(get_store()).find(session.get('adm'))


def require_student(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        student = current_student()
        if student is None:
            session.pop('adm', None)
            raise Unauthenticated('Please log in first.')
        return fn(student, *args, **kwargs)
    return wrapper


def require_admin(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not session.get('admin'):
            raise AuthorizationError('Admin login required.')
        # session timeout enforcement
        last = session.get('last_active')
        if last:
            try:
                last_dt = datetime.fromisoformat(last)
                expired = datetime.now(timezone.utc) - last_dt > timedelta(
                    seconds=app.config['SESSION_TIMEOUT_SECONDS']
                )
            except (TypeError, ValueError):
                expired = True
            if expired:
                session.clear()
                raise AuthorizationError('Session expired. Please login again.')
        session['last_active'] = datetime.now(timezone.utc).isoformat()
        return fn(*args, **kwargs)
    return wrapper


def admin_console():
    return AdminConsole(get_store(), min_password_length=app.config['MIN_ADMIN_PASSWORD_LENGTH'])


@app.errorhandler(ElectionError)
def handle_election_error(e):
    if e.status_code >= 500:
        logger.error('%s on %s: %s', type(e).__name__, request.path, e)
    else:
        logger.info('%s on %s: %s', type(e).__name__, request.path, e)
    return jsonify({'error': str(e), 'type': type(e).__name__}), e.status_code


# ------------------ MAIN PAGE ------------------
@app.route('/')
def index():
    store = get_store()
    return jsonify({
        'academic_year': store.get_setting('academic_year'),
        'results_published': store.get_setting('results_published'),
        'deadline': deadline_status(store.get_setting('deadline')),
    })


# ------------------ STUDENT AUTH ------------------
@app.route('/register', methods=['POST'])
def register():
    data = payload()
    student = Registrar(get_store()).register(
        data.get('adm'), data.get('name'), data.get('class'), data.get('dorm'), data.get('photo', '')
    )
    return jsonify({'message': 'Registration successful! Please log in.', 'student': student}), 201


@app.route('/login', methods=['POST'])
def login():
    data = payload()
    student = Registrar(get_store()).login(
        data.get('adm'), data.get('name'), data.get('class'), data.get('dorm')
    )
    session['adm'] = student['adm']
    return jsonify({'message': 'Login successful', 'student': student})


@app.route('/logout')
def logout():
    session.pop('adm', None)
    return jsonify({'message': 'Logged out successfully'})


@app.route('/me')
@require_student
def me(student):
    voted = sorted(BallotEngine(get_store()).voted_posts(student['adm']))
    return jsonify({'student': student, 'voted_posts': voted})


# ------------------ DIRECTORY ------------------
@app.route('/classes')
def classes():
    return jsonify([c['name'] for c in get_store().get('classes')])


@app.route('/dorms')
def dorms():
    return jsonify([d['name'] for d in get_store().get('dorms')])


@app.route('/posts')
def posts():
    return jsonify([{'name': p['name'], 'category': p['category']} for p in get_store().get('posts')])


@app.route('/candidates')
def candidates():
    return jsonify([c for c in get_store().get('candidates') if c.get('approved')])


# ------------------ NOMINATIONS ------------------
@app.route('/nominations', methods=['POST'])
@require_student
def nominate(student):
    data = payload()
    nomination = NominationWorkflow(get_store()).submit(student, data, photo=data.get('photo', ''))
    return jsonify({'message': 'Nomination submitted. Awaiting admin approval.', 'nomination': nomination}), 201


# ------------------ VOTING ------------------
@app.route('/ballot', methods=['GET'])
@require_student
def ballot(student):
    posts = BallotEngine(get_store()).eligible_ballot(student)
    if not posts:
        return jsonify({'posts': [], 'message': 'You have already voted for all available positions.'})
    return jsonify({'posts': posts})


@app.route('/ballot', methods=['POST'])
@require_student
def submit_ballot(student):
    data = payload()
    selections = data.get('selections', data)
    recorded = BallotEngine(get_store()).submit(student, selections)
    if recorded:
        message = 'Your votes have been recorded.'
    else:
        message = 'No new votes selected or you have already voted for these posts.'
    return jsonify({'recorded': recorded, 'message': message})


@app.route('/vote', methods=['POST'])
@require_student
def vote(student):
    data = payload()
    recorded = BallotEngine(get_store()).cast_vote(student, data.get('post'), data.get('candidate'))
    return jsonify({'message': 'Vote cast successfully', 'vote': recorded}), 201


@app.route('/deadline')
def deadline():
    return jsonify(deadline_status(get_store().get_setting('deadline')))


@app.route('/results')
def results():
    outcome = published_results(get_store())
    if not outcome['available']:
        outcome['message'] = 'Results are not yet available.'
    return jsonify(outcome)


# ------------------ ADMIN AUTH ------------------
@app.route('/admin/login', methods=['POST'])
def admin_login():
    admin_console().authenticate(payload().get('password'))
    session['admin'] = True
    session['last_active'] = datetime.now(timezone.utc).isoformat()
    return jsonify({'message': 'Welcome Admin'})


@app.route('/admin/logout')
def admin_logout():
    if session.get('admin'):
        admin_console().logout()
    session.pop('admin', None)
    session.pop('last_active', None)
    return jsonify({'message': 'Logged out successfully'})


@app.route('/admin/change_password', methods=['POST'])
@require_admin
def change_password():
    data = payload()
    admin_console().change_password(data.get('current_password'), data.get('new_password'))
    return jsonify({'message': 'Admin password changed successfully.'})


# ------------------ ADMIN DASHBOARD ------------------
@app.route('/admin', methods=['GET'])
@require_admin
def admin_home():
    return jsonify(admin_console().overview())


@app.route('/admin/votes')
@require_admin
def admin_votes():
    return jsonify(get_store().get('votes'))


@app.route('/admin/students')
@require_admin
def admin_students():
    return jsonify(Registrar(get_store()).all())


@app.route('/admin/logs')
@require_admin
def admin_logs():
    limit = request.args.get('limit', type=int)
    return jsonify(recent_logs(get_store(), limit))


# ------------------ ADMIN CLASSES / DORMS / POSTS ------------------
@app.route('/admin/classes', methods=['POST'])
@require_admin
def add_class():
    record = admin_console().add_class(payload().get('name'))
    return jsonify(record), 201


@app.route('/admin/classes/delete/<name>', methods=['POST'])
@require_admin
def delete_class(name):
    dropped = admin_console().delete_class(name)
    return jsonify({'deleted': dropped is not None, 'removed': dropped or {}})


@app.route('/admin/dorms', methods=['POST'])
@require_admin
def add_dorm():
    record = admin_console().add_dorm(payload().get('name'))
    return jsonify(record), 201


@app.route('/admin/dorms/delete/<name>', methods=['POST'])
@require_admin
def delete_dorm(name):
    dropped = admin_console().delete_dorm(name)
    return jsonify({'deleted': dropped is not None, 'removed': dropped or {}})


@app.route('/admin/posts', methods=['POST'])
@require_admin
def add_post():
    data = payload()
    record = admin_console().add_post(data.get('name'), data.get('category'))
    return jsonify(record), 201


@app.route('/admin/posts/delete/<name>', methods=['POST'])
@require_admin
def delete_post(name):
    dropped = admin_console().delete_post(name)
    return jsonify({'deleted': dropped is not None, 'removed': dropped or {}})


# ------------------ ADMIN CANDIDATES ------------------
@app.route('/admin/candidates', methods=['POST'])
@require_admin
def add_candidate():
    data = payload()
    candidate = admin_console().add_candidate(
        data.get('name'),
        data.get('post'),
        data.get('class'),
        data.get('dorm'),
        data.get('manifesto', ''),
        data.get('photo', ''),
    )
    return jsonify(candidate), 201


@app.route('/admin/candidates/delete/<candidate_id>', methods=['POST'])
@require_admin
def delete_candidate(candidate_id):
    removed = admin_console().delete_candidate(candidate_id)
    return jsonify({'deleted': removed is not None})


# ------------------ ADMIN NOMINATIONS ------------------
@app.route('/admin/nominations')
@require_admin
def pending_nominations():
    return jsonify(NominationWorkflow(get_store()).pending())


@app.route('/admin/nominations/approve/<nomination_id>', methods=['POST'])
@require_admin
def approve_nomination(nomination_id):
    candidate = NominationWorkflow(get_store()).approve(nomination_id)
    return jsonify({'approved': candidate is not None, 'candidate': candidate})


@app.route('/admin/nominations/reject/<nomination_id>', methods=['POST'])
@require_admin
def reject_nomination(nomination_id):
    rejected = NominationWorkflow(get_store()).reject(nomination_id)
    return jsonify({'rejected': rejected is not None})


# ------------------ ADMIN SETTINGS ------------------
@app.route('/admin/year', methods=['POST'])
@require_admin
def set_academic_year():
    year = admin_console().set_academic_year(payload().get('year'))
    return jsonify({'message': 'Academic year updated.', 'academic_year': year})


@app.route('/admin/deadline', methods=['POST'])
@require_admin
def set_deadline():
    status = admin_console().set_deadline(payload().get('deadline'))
    return jsonify({'message': 'Voting deadline set.', **status})


@app.route('/admin/deadline/clear', methods=['POST'])
@require_admin
def clear_deadline():
    admin_console().clear_deadline()
    return jsonify({'message': 'Voting deadline cleared.'})


@app.route('/admin/results/publish', methods=['POST'])
@require_admin
def publish_results():
    admin_console().publish_results()
    return jsonify({'message': 'Results have been published.'})


@app.route('/admin/results/unpublish', methods=['POST'])
@require_admin
def unpublish_results():
    admin_console().unpublish_results()
    return jsonify({'message': 'Results have been hidden.'})


# ------------------ EXPORTS ------------------
@app.route('/export/votes.csv', methods=['GET'])
@require_admin
def export_votes_csv():
    filter_type = request.args.get('type', '')
    value = request.args.get('value', '')
    mem = io.BytesIO()
    mem.write(votes_csv(get_store(), filter_type, value).encode())
    mem.seek(0)
    return send_file(mem, mimetype='text/csv', as_attachment=True, download_name='votes_export.csv')


@app.route('/export/votes.html', methods=['GET'])
@require_admin
def export_votes_printable():
    store = get_store()
    filter_type = request.args.get('type', '')
    value = request.args.get('value', '')
    rows = filtered_votes(store, filter_type, value)
    add_log(store, 'export', f'PDF export: {filter_type}={value} ({len(rows)} rows)')
    return render_template_string(EXPORT_HTML, rows=rows, filter_type=filter_type, value=value)


def main():
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app.run(debug=True, port=5000)


if __name__ == '__main__':
    main()
