import csv
import io

import pytest

from schoolvote.ballot import BallotEngine
from schoolvote.errors import NotFoundError, ValidationError
from schoolvote.exports import filtered_votes, votes_csv


@pytest.fixture
def voted(school, students, candidates):
    engine = BallotEngine(school)
    engine.submit(students['1'], {'President': 'Alice', 'Class Prefect': 'Carol'})
    engine.submit(students['2'], {'President': 'Bob'})
    engine.submit(students['3'], {'Dorm Captain': 'Eve'})
    return school


def test_filter_by_class_is_case_insensitive(voted):
    rows = filtered_votes(voted, 'class', ' f1 ')
    assert sorted((r['adm'], r['post']) for r in rows) == [
        ('1', 'Class Prefect'),
        ('1', 'President'),
        ('3', 'Dorm Captain'),
    ]


def test_filter_by_dorm_and_post(voted):
    assert {r['adm'] for r in filtered_votes(voted, 'dorm', 'B')} == {'2', '3'}
    assert {r['voted_for'] for r in filtered_votes(voted, 'post', 'president')} == {'Alice', 'Bob'}


def test_no_rows_is_reported(voted):
    with pytest.raises(NotFoundError):
        filtered_votes(voted, 'post', 'Head Chef')


def test_unknown_filter_type(voted):
    with pytest.raises(ValidationError):
        filtered_votes(voted, 'year', '2025')


def test_csv_layout_and_audit(voted):
    text = votes_csv(voted, 'post', 'President')
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == ['Admission', 'Name', 'Position', 'VotedFor', 'Time']
    assert [r[:4] for r in rows[1:]] == [
        ['1', 'Jane Doe', 'President', 'Alice'],
        ['2', 'John Roe', 'President', 'Bob'],
    ]
    assert voted.get('logs')[0]['message'] == 'CSV export: post=President (2 rows)'
