import datetime as dt

import pytest

from tvspotter.db import TrackingRepository
from tvspotter.models import TrackedMovieRow, TrackedShowRow
from tvspotter.services.models import MISSING_RELEASE_DATE, TrackedMovie, TrackedShow


def make_show(external_id="60059", status="close,2", status_code=202, name="Better Call Saul"):
    return TrackedShow(
        external_id=external_id,
        name=name,
        original_name=name,
        first_release=dt.date(2015, 2, 8),
        next_episode_date=dt.date(2024, 1, 3),
        next_episode="S02E05",
        poster_url=None,
        backdrop_url=None,
        status=status,
        status_code=status_code,
    )


def make_movie(external_id="502425", name="Escape Room"):
    return TrackedMovie(
        external_id=external_id,
        name=name,
        original_name=name,
        first_release=None,
        theatrical_release=dt.date(2024, 1, 3),
        digital_physical_release=MISSING_RELEASE_DATE,
        poster_url=None,
        backdrop_url=None,
        status="theatrical-close,2",
        status_code=212,
    )


@pytest.fixture
def repo():
    return TrackingRepository()


def test_is_tracked_matches_exact_text(db_session, repo):
    repo.upsert(db_session, "tv", make_show("60059"))

    assert repo.is_tracked(db_session, "60059", "tv")
    assert repo.is_tracked(db_session, 60059, "tv")
    assert not repo.is_tracked(db_session, "6005", "tv")
    assert not repo.is_tracked(db_session, "600590", "tv")
    assert not repo.is_tracked(db_session, " 60059", "tv")
    assert not repo.is_tracked(db_session, "60059", "movie")


def test_upsert_overwrites_instead_of_appending(db_session, repo):
    repo.upsert(db_session, "tv", make_show(status="close,2", status_code=202))
    repo.upsert(db_session, "tv", make_show(status="already-released", status_code=10))
    db_session.commit()

    rows = repo.list_all(db_session, "tv")
    assert len(rows) == 1
    assert rows[0].status == "already-released"
    assert rows[0].status_code == 10
    assert rows[0].next_episode == "S02E05"
    assert rows[0].last_updated is not None


def test_upsert_many_and_order(db_session, repo):
    count = repo.upsert(
        db_session,
        "movie",
        [make_movie("2", "Beta"), make_movie("1", "Alpha"), make_movie("3", "Gamma")],
    )
    assert count == 3

    assert [row.name for row in repo.list_all(db_session, "movie")] == ["Alpha", "Beta", "Gamma"]
    assert [row.external_id for row in repo.list_all(db_session, "movie", order_by="external_id", descending=True)] == [
        "3",
        "2",
        "1",
    ]
    assert isinstance(repo.get(db_session, "2", "movie"), TrackedMovieRow)
    assert repo.get(db_session, "2", "movie").digital_physical_release == MISSING_RELEASE_DATE


def test_upsert_rejects_mismatched_kind(db_session, repo):
    with pytest.raises(ValueError):
        repo.upsert(db_session, "movie", make_show())


def test_unknown_kind_and_order_column(db_session, repo):
    with pytest.raises(ValueError):
        repo.is_tracked(db_session, "1", "book")
    with pytest.raises(ValueError):
        repo.list_all(db_session, "tv", order_by="metadata")


def test_delete(db_session, repo):
    repo.upsert(db_session, "tv", make_show())
    assert repo.delete(db_session, "60059", "tv") is True
    assert repo.delete(db_session, "60059", "tv") is False
    assert repo.get(db_session, "60059", "tv") is None


def test_rows_carry_their_kind(db_session, repo):
    repo.upsert(db_session, "tv", make_show())
    row = repo.get(db_session, "60059", "tv")
    assert isinstance(row, TrackedShowRow)
    assert row.kind == "tv"
