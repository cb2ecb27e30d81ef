"""Walk a running server through one full election.

Start the server first (``schoolvote``), then run this script. It uses the
default admin password unless ADMIN_PASSWORD is set.
"""
import os
import time
from urllib.parse import urljoin

import requests

BASE = os.getenv('SMOKE_BASE_URL', 'http://127.0.0.1:5000')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin123')

admin = requests.Session()
voter = requests.Session()


def show(label, resp):
    print(f'\n--- {label} ---')
    print(resp.status_code)
    print(resp.text[:800])


suffix = str(int(time.time()))
class_name = f'F1-{suffix}'
dorm = f'Dorm-{suffix}'
post = f'President-{suffix}'

show('admin login', admin.post(urljoin(BASE, '/admin/login'), json={'password': ADMIN_PASSWORD}))
show('add class', admin.post(urljoin(BASE, '/admin/classes'), json={'name': class_name}))
show('add dorm', admin.post(urljoin(BASE, '/admin/dorms'), json={'name': dorm}))
show('add post', admin.post(urljoin(BASE, '/admin/posts'), json={'name': post, 'category': 'school_wide'}))
show('add candidate', admin.post(urljoin(BASE, '/admin/candidates'), json={
    'name': 'Bob', 'post': post, 'class': class_name, 'dorm': dorm,
}))

student = {'adm': f'S{suffix}', 'name': 'Smoke Voter', 'class': class_name, 'dorm': dorm}
show('student register', voter.post(urljoin(BASE, '/register'), json=student))
show('student login', voter.post(urljoin(BASE, '/login'), json=student))

r = voter.get(urljoin(BASE, '/ballot'))
show('ballot', r)
ballot = r.json().get('posts', [])
selections = {p['post']: p['candidates'][0]['name'] for p in ballot}
show('submit ballot', voter.post(urljoin(BASE, '/ballot'), json={'selections': selections}))
show('submit ballot again', voter.post(urljoin(BASE, '/ballot'), json={'selections': selections}))

show('results before publish', voter.get(urljoin(BASE, '/results')))
show('publish', admin.post(urljoin(BASE, '/admin/results/publish')))
show('results', voter.get(urljoin(BASE, '/results')))

r = admin.get(urljoin(BASE, '/export/votes.csv'), params={'type': 'post', 'value': post})
print('\n--- download votes ---')
print(r.status_code)
print(r.text[:400])

print('\nHTTP flow done')
