import re
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event

from shortener import crud, models
from shortener.errors import NotFoundError, ServerError, ValidationError


def test_generated_codes_are_seven_alphanumerics():
    for _ in range(200):
        assert re.fullmatch(r"[A-Za-z0-9]{7}", crud.generate_code())


@pytest.mark.parametrize("code,expected", [
    ("my-code_1", "my-code_1"),
    ("  abc  ", "abc"),
    ("ab", ""),
    ("a" * 31, ""),
    ("has space", ""),
    ("emoji😀", ""),
    ("api", ""),
    ("", ""),
    (None, ""),
    (12345, ""),
    (["abc"], ""),
])
def test_sanitize_code(code, expected):
    assert crud.sanitize_code(code) == expected


@pytest.mark.parametrize("url,ok", [
    ("http://example.com", True),
    ("https://example.com/a?b=c#d", True),
    ("ftp://x", False),
    ("example.com", False),
    ("http://", False),
    ("http://exa mple.com", False),
    ("javascript:alert(1)", False),
    ("https://example.com/" + "a" * 2048, False),
    ("", False),
])
def test_is_valid_url(url, ok):
    assert crud.is_valid_url(url) is ok


def test_shorten_creates_once_then_reuses(db):
    link, created = crud.shorten(db, "http://example.com/a")
    assert created
    assert re.fullmatch(r"[A-Za-z0-9_-]{7}", link.short_code)
    assert link.visits == 0

    again, created = crud.shorten(db, "http://example.com/a")
    assert not created
    assert again.short_code == link.short_code
    assert crud.count_links(db) == 1


def test_shorten_matches_trimmed_url_exactly(db):
    link, _ = crud.shorten(db, "  http://example.com/a  ")
    assert link.original_url == "http://example.com/a"

    same, created = crud.shorten(db, "http://example.com/a")
    assert not created and same.id == link.id

    _, created = crud.shorten(db, "http://example.com/a/")
    assert created
    _, created = crud.shorten(db, "HTTP://EXAMPLE.COM/a")
    assert created
    assert crud.count_links(db) == 3


def test_shorten_rejects_bad_urls_without_writing(db):
    for url in ("ftp://x", "not a url", "", None):
        with pytest.raises(ValidationError):
            crud.shorten(db, url)
    assert crud.count_links(db) == 0


def test_preferred_code_is_used(db):
    link, _ = crud.shorten(db, "http://example.com/a", "launch-2024")
    assert link.short_code == "launch-2024"


def test_invalid_preferred_code_is_discarded(db):
    link, created = crud.shorten(db, "http://example.com/a", "no")
    assert created
    assert len(link.short_code) == 7


def test_taken_preferred_code_falls_back_to_generated(db):
    crud.shorten(db, "http://example.com/a", "mycode")
    link, created = crud.shorten(db, "http://example.com/b", "mycode")
    assert created
    assert link.short_code != "mycode"
    assert len(link.short_code) == 7


def test_generated_collision_draws_again(db, monkeypatch):
    crud.shorten(db, "http://example.com/a", "AAAAAAA")
    codes = iter(["AAAAAAA", "BBBBBBB"])
    monkeypatch.setattr(crud, "generate_code", lambda: next(codes))

    link, _ = crud.shorten(db, "http://example.com/b")
    assert link.short_code == "BBBBBBB"


def test_unique_constraint_conflict_is_retried(db, monkeypatch):
    crud.shorten(db, "http://example.com/a", "AAAAAAA")
    codes = iter(["AAAAAAA", "CCCCCCC"])
    monkeypatch.setattr(crud, "generate_code", lambda: next(codes))
    monkeypatch.setattr(crud, "code_exists", lambda db, code: False)

    link, created = crud.shorten(db, "http://example.com/b")
    assert created
    assert link.short_code == "CCCCCCC"
    assert crud.count_links(db) == 2


def test_gives_up_after_bounded_attempts(db, monkeypatch):
    crud.shorten(db, "http://example.com/a", "AAAAAAA")
    monkeypatch.setattr(crud, "generate_code", lambda: "AAAAAAA")

    with pytest.raises(ServerError):
        crud.shorten(db, "http://example.com/b")
    assert crud.count_links(db) == 1


def test_record_visit_counts_each_redirect(db):
    link, _ = crud.shorten(db, "http://example.com/a")
    for _ in range(5):
        assert crud.record_visit(db, link.short_code) == "http://example.com/a"
    db.refresh(link)
    assert link.visits == 5


def test_record_visit_is_a_single_update(app, db):
    crud.shorten(db, "http://example.com/a", "abc")
    statements = []

    def capture(conn, cursor, statement, *args):
        statements.append(statement)

    event.listen(app.state.engine, "before_cursor_execute", capture)
    try:
        crud.record_visit(db, "abc")
    finally:
        event.remove(app.state.engine, "before_cursor_execute", capture)

    assert len(statements) == 1
    assert statements[0].lstrip().upper().startswith("UPDATE")


def test_record_visit_unknown_code(db):
    with pytest.raises(NotFoundError):
        crud.record_visit(db, "missing")


def _seed(db, count):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(count):
        db.add(models.Link(
            original_url=f"http://example.com/{i}",
            short_code=f"code{i}",
            created_at=base + timedelta(minutes=i),
        ))
    db.commit()


def test_list_links_newest_first_with_paging(db):
    _seed(db, 5)
    page, limit, total, rows = crud.list_links(db, page=1, limit=2)
    assert (page, limit, total) == (1, 2, 5)
    assert [r.short_code for r in rows] == ["code4", "code3"]

    _, _, _, rows = crud.list_links(db, page=3, limit=2)
    assert [r.short_code for r in rows] == ["code0"]

    _, _, total, rows = crud.list_links(db, page=4, limit=2)
    assert rows == [] and total == 5


def test_list_links_breaks_timestamp_ties_by_id(db):
    when = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db.add(models.Link(id="a" * 32, original_url="http://a.com", short_code="aaa", created_at=when))
    db.add(models.Link(id="b" * 32, original_url="http://b.com", short_code="bbb", created_at=when))
    db.commit()
    _, _, _, rows = crud.list_links(db)
    assert [r.short_code for r in rows] == ["bbb", "aaa"]


@pytest.mark.parametrize("page,limit,expected", [
    (0, 0, (1, 1)),
    (-3, -5, (1, 1)),
    (2, 1000, (2, 200)),
    (1, 200, (1, 200)),
])
def test_list_links_clamps(db, page, limit, expected):
    got_page, got_limit, _, _ = crud.list_links(db, page=page, limit=limit)
    assert (got_page, got_limit) == expected


def test_summary_empty(db):
    assert crud.summary(db) == (0, 0)


def test_summary_sums_visits(db):
    a, _ = crud.shorten(db, "http://example.com/a")
    b, _ = crud.shorten(db, "http://example.com/b")
    crud.record_visit(db, a.short_code)
    crud.record_visit(db, a.short_code)
    crud.record_visit(db, b.short_code)
    assert crud.summary(db) == (2, 3)


def test_delete_link_is_idempotent(db):
    link, _ = crud.shorten(db, "http://example.com/a")
    crud.delete_link(db, "does-not-exist")
    assert crud.count_links(db) == 1
    crud.delete_link(db, link.id)
    crud.delete_link(db, link.id)
    assert crud.count_links(db) == 0


def test_delete_links_counts_only_matches(db):
    a, _ = crud.shorten(db, "http://example.com/a")
    b, _ = crud.shorten(db, "http://example.com/b")
    crud.shorten(db, "http://example.com/c")
    assert crud.delete_links(db, [a.id, b.id, "nope"]) == 2
    assert crud.count_links(db) == 1


@pytest.mark.parametrize("ids", [[], None])
def test_delete_links_requires_ids(db, ids):
    with pytest.raises(ValidationError):
        crud.delete_links(db, ids)
