import logging
from datetime import datetime

from .audit import add_log
from .errors import DuplicateError, Unauthenticated, ValidationError, VotingClosedError
from .models import SCHOOL_WIDE, candidate_scope

logger = logging.getLogger(__name__)


def parse_deadline(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid deadline: {value}')


def deadline_status(deadline, now=None):
    """Countdown data for a stored ISO deadline."""
    deadline = parse_deadline(deadline)
    if deadline is None:
        return {'deadline': None, 'closed': False, 'seconds_remaining': None}
    now = now or datetime.now(deadline.tzinfo)
    remaining = int((deadline - now).total_seconds())
    return {
        'deadline': deadline.isoformat(),
        'closed': remaining <= 0,
        'seconds_remaining': max(remaining, 0),
    }


def eligible_candidates(post, candidates, student):
    category = post.get('category', SCHOOL_WIDE)
    scope = candidate_scope(category, student['class'], student['dorm'])
    return [
        c for c in candidates
        if c.get('approved')
        and c['post'] == post['name']
        and candidate_scope(category, c['class'], c['dorm']) == scope
    ]


def selection_text(value):
    if value is not None and not isinstance(value, (str, int, float)):
        raise ValidationError('Selections must be plain post and candidate values.')
    return str(value if value is not None else '').strip()


class BallotEngine:
    """Computes a student's ballot and records their votes.

    A student gets at most one vote per post. Every check and write happens
    inside one store transaction.
    """

    def __init__(self, store, clock=None):
        self.store = store
        self.clock = clock

    def _now(self, tzinfo=None):
        if self.clock is not None:
            return self.clock()
        return datetime.now(tzinfo)

    def _check_open(self):
        deadline = parse_deadline(self.store.get_setting('deadline'))
        if deadline is not None and self._now(deadline.tzinfo) >= deadline:
            raise VotingClosedError('Voting closed.')

    def voted_posts(self, adm):
        return {v['post'] for v in self.store.get('votes') if v['adm'] == adm}

    def eligible_ballot(self, student):
        """Posts the student has not voted for, each with its eligible candidates."""
        if not student:
            raise Unauthenticated('Please log in first.')
        with self.store.transaction():
            posts = self.store.get('posts')
            candidates = self.store.get('candidates')
            voted = self.voted_posts(student['adm'])

        ballot = []
        for post in posts:
            if post['name'] in voted:
                continue
            options = eligible_candidates(post, candidates, student)
            if not options:
                continue
            ballot.append({
                'post': post['name'],
                'category': post.get('category', SCHOOL_WIDE),
                'candidates': [
                    {'id': c['id'], 'name': c['name'], 'class': c['class'], 'dorm': c['dorm']}
                    for c in options
                ],
            })
        return ballot

    def _new_vote(self, student, post, candidate):
        return {
            'adm': student['adm'],
            'name': student['name'],
            'post': post,
            'voted_for': candidate['name'],
            'candidate_id': candidate['id'],
            'time': datetime.now().isoformat(),
        }

    def _resolve_choice(self, posts, candidates, student, post_name, choice):
        """Eligible candidate for ``choice``, given as a candidate id or name."""
        post = next((p for p in posts if p['name'] == post_name), None)
        if post is None:
            raise ValidationError(f'Unknown post: {post_name}')
        options = eligible_candidates(post, candidates, student)
        by_id = next((c for c in options if c['id'] == choice), None)
        if by_id is not None:
            return by_id
        matches = [c for c in options if c['name'] == choice]
        if not matches:
            raise ValidationError(f'{choice} is not a candidate you can vote for as {post_name}')
        if len(matches) > 1:
            raise ValidationError(f'More than one {choice} stands for {post_name}; choose by candidate id')
        return matches[0]

    def submit(self, student, selections):
        """Record one vote per selected post and return how many were new.

        Posts already voted for are skipped, so resubmitting a ballot is a
        no-op. An invalid selection aborts the whole submission.
        """
        if not student:
            raise Unauthenticated('Please log in first.')
        if selections is None:
            selections = {}
        if not isinstance(selections, dict):
            raise ValidationError('Selections must map posts to candidates.')
        chosen = {}
        for post, choice in selections.items():
            choice = selection_text(choice)
            if choice:
                chosen[selection_text(post)] = choice
        if not chosen:
            logger.info('Empty ballot from %s', student['adm'])
            return 0

        with self.store.transaction():
            self._check_open()
            posts = self.store.get('posts')
            candidates = self.store.get('candidates')
            votes = self.store.get('votes')
            voted = {v['post'] for v in votes if v['adm'] == student['adm']}

            new_votes = 0
            for post_name, choice in chosen.items():
                if post_name in voted:
                    continue
                candidate = self._resolve_choice(posts, candidates, student, post_name, choice)
                votes.append(self._new_vote(student, post_name, candidate))
                voted.add(post_name)
                new_votes += 1

            if new_votes:
                self.store.put('votes', votes)
                add_log(
                    self.store,
                    'vote',
                    f"Votes recorded: {new_votes} for {student['name']}",
                    adm=student['adm'],
                    count=new_votes,
                )
            else:
                logger.info('No new votes for %s', student['adm'])
        return new_votes

    def cast_vote(self, student, post_name, choice):
        """Record a single vote, rejecting a second vote for the same post."""
        if not student:
            raise Unauthenticated('Please log in first.')
        post_name = selection_text(post_name)
        choice = selection_text(choice)
        if not post_name or not choice:
            raise ValidationError('Post and candidate are required.')

        with self.store.transaction():
            self._check_open()
            votes = self.store.get('votes')
            if any(v['adm'] == student['adm'] and v['post'] == post_name for v in votes):
                raise DuplicateError('Already voted for this post')
            candidate = self._resolve_choice(
                self.store.get('posts'), self.store.get('candidates'), student, post_name, choice
            )
            vote = self._new_vote(student, post_name, candidate)
            votes.append(vote)
            self.store.put('votes', votes)
            add_log(
                self.store,
                'vote',
                f"Vote recorded for {student['name']} ({post_name})",
                adm=student['adm'],
                count=1,
            )
        return vote
