import logging
import re
import secrets
import string
from urllib.parse import urlparse

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shortener import models
from shortener.errors import NotFoundError, ServerError, ValidationError

logger = logging.getLogger("shortener.crud")

ALPHABET = string.digits + string.ascii_lowercase + string.ascii_uppercase
CODE_LENGTH = 7
CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]{3,30}")
MAX_CODE_ATTEMPTS = 5
MAX_URL_LENGTH = 2048

DEFAULT_LIMIT = 20
MAX_LIMIT = 200

# Paths FastAPI serves ahead of the redirect route
RESERVED = {"api", "docs", "redoc"}


def generate_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))


def make_short_url(base_url: str, short_code: str) -> str:
    return f"{base_url}/{short_code}"


def is_valid_url(url: str) -> bool:
    """Absolute http(s) URL with a host and no whitespace."""
    if not url or len(url) > MAX_URL_LENGTH or any(c.isspace() for c in url):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def sanitize_code(code) -> str:
    """Return the preferred code if usable, else an empty string."""
    if not isinstance(code, str):
        return ""
    cleaned = code.strip()
    if not CODE_PATTERN.fullmatch(cleaned) or cleaned.lower() in RESERVED:
        return ""
    return cleaned


def get_link_by_url(db: Session, original_url: str) -> models.Link | None:
    return db.query(models.Link).filter(models.Link.original_url == original_url).first()


def get_link_by_code(db: Session, short_code: str) -> models.Link | None:
    return db.query(models.Link).filter_by(short_code=short_code).first()


def code_exists(db: Session, short_code: str) -> bool:
    return db.query(models.Link.id).filter_by(short_code=short_code).first() is not None


def shorten(db: Session, url: str | None, preferred_code=None) -> tuple[models.Link, bool]:
    """Create a link for ``url`` or return the one already stored for it.

    Returns ``(link, created)``. Repeat submissions are matched on the exact
    trimmed string, so ``http://a.com`` and ``http://a.com/`` are different
    links. Two concurrent first submissions of the same URL can both create a
    record; only ``short_code`` is unique in the store.
    """
    url = (url or "").strip()
    if not is_valid_url(url):
        raise ValidationError("Invalid URL. Must start with http:// or https://")

    existing = get_link_by_url(db, url)
    if existing:
        return existing, False

    candidate = sanitize_code(preferred_code)
    attempts = 0
    while attempts < MAX_CODE_ATTEMPTS:
        if not candidate or code_exists(db, candidate):
            candidate = generate_code()
            attempts += 1
            continue

        link = models.Link(original_url=url, short_code=candidate)
        db.add(link)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race for the code between the existence check and the insert
            db.rollback()
            logger.warning("Short code %s taken on insert, drawing another", candidate)
            candidate = ""
            attempts += 1
            continue
        db.refresh(link)
        logger.info("Created link %s -> %s", link.short_code, link.original_url)
        return link, True

    raise ServerError("Could not allocate a unique short code")


def record_visit(db: Session, short_code: str) -> str:
    """Increment the visit counter and return the target URL in one statement."""
    stmt = (
        update(models.Link)
        .where(models.Link.short_code == short_code)
        .values(visits=models.Link.visits + 1)
        .returning(models.Link.original_url)
        .execution_options(synchronize_session=False)
    )
    original_url = db.execute(stmt).scalar_one_or_none()
    db.commit()
    if original_url is None:
        raise NotFoundError()
    return original_url


def count_links(db: Session) -> int:
    return db.query(models.Link).count()


def total_visits(db: Session) -> int:
    return int(db.query(func.coalesce(func.sum(models.Link.visits), 0)).scalar())


def list_links(db: Session, page: int = 1, limit: int = DEFAULT_LIMIT) -> tuple[int, int, int, list[models.Link]]:
    limit = min(max(limit, 1), MAX_LIMIT)
    page = max(page, 1)
    skip = (page - 1) * limit
    rows = (
        db.query(models.Link)
        .order_by(models.Link.created_at.desc(), models.Link.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    total = count_links(db)
    return page, limit, total, rows


def summary(db: Session) -> tuple[int, int]:
    return count_links(db), total_visits(db)


def delete_link(db: Session, link_id: str) -> None:
    # Deleting an id that does not exist is not an error
    deleted = db.query(models.Link).filter(models.Link.id == link_id).delete(synchronize_session=False)
    db.commit()
    logger.info("Deleted link id=%s (matched=%d)", link_id, deleted)


def delete_links(db: Session, ids: list[str] | None) -> int:
    if not ids:
        raise ValidationError("ids array required")
    deleted = (
        db.query(models.Link)
        .filter(models.Link.id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Bulk deleted %d of %d links", deleted, len(ids))
    return deleted
