"""Vote counting and per-post ranking, gated by the results-published flag."""


def vote_target(vote, candidates_by_name):
    """Candidate id a vote counts for.

    Votes carry the candidate id; older records only name the candidate and
    are matched on (post, name).
    """
    if vote.get('candidate_id'):
        return vote['candidate_id']
    return candidates_by_name.get((vote['post'], vote['voted_for']))


def count_votes(candidates, votes):
    """Count votes per candidate id.

    Every known candidate starts at zero. Votes for candidates that no longer
    exist are dropped.
    """
    tally = {c['id']: 0 for c in candidates}
    by_name = {}
    for c in candidates:
        by_name.setdefault((c['post'], c['name']), c['id'])
    for vote in votes:
        key = vote_target(vote, by_name)
        if key in tally:
            tally[key] += 1
    return tally


def group_results(candidates, tally):
    """Group candidates by post and rank each group by votes, ties marked as joint leaders."""
    by_post = {}
    for c in candidates:
        by_post.setdefault(c['post'], []).append({
            'id': c['id'],
            'name': c['name'],
            'class': c.get('class'),
            'dorm': c.get('dorm'),
            'votes': tally.get(c['id'], 0),
        })

    results = []
    for post, rows in by_post.items():
        # sort is stable, equal counts keep insertion order
        rows.sort(key=lambda r: r['votes'], reverse=True)
        top = rows[0]['votes']
        for row in rows:
            row['leader'] = row['votes'] == top
        results.append({
            'post': post,
            'total_votes': sum(r['votes'] for r in rows),
            'candidates': rows,
        })
    return results


def published_results(store):
    """Grouped results, or ``{'available': False}`` while results are unpublished."""
    with store.transaction():
        if not store.get_setting('results_published'):
            return {'available': False}
        candidates = store.get('candidates')
        votes = store.get('votes')

    tally = count_votes(candidates, votes)
    return {
        'available': True,
        'tally': [
            {'id': c['id'], 'post': c['post'], 'name': c['name'], 'votes': tally[c['id']]}
            for c in candidates
        ],
        'results': group_results(candidates, tally),
    }
