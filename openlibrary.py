"""
Summary prefill for the book form, looked up on Open Library by ISBN.

Lookups never raise: any network, status or JSON problem simply means no prefill.
"""

import requests

from log import get_logger

logger = get_logger("openlibrary")

BASE_URL = "https://openlibrary.org"

# Reuse one HTTP session for every lookup and set consistent headers.
SESSION = requests.Session()
SESSION.headers.update({
    "User-Agent": "LocalLibrary/1.0 (catalog summary prefill)",
    "Accept": "application/json",
})


def normalize_isbn(isbn: str) -> str:
    """
    Normalize ISBN input by removing hyphens and spaces.
    """
    return (isbn or "").replace("-", "").replace(" ", "").strip()


def extract_summary(data: dict) -> str | None:
    """
    The "description" of an edition or work record.

    Open Library returns it either as a plain string or as a dict with a
    "value" key.
    """
    desc = data.get("description")

    if isinstance(desc, str):
        return desc.strip() or None

    if isinstance(desc, dict):
        return (desc.get("value") or "").strip() or None

    return None


def _get_json(url: str, timeout: float) -> dict | None:
    try:
        response = SESSION.get(url, timeout=timeout)
        if response.status_code != 200:
            logger.info("GET %s -> %s", url, response.status_code)
            return None
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("GET %s failed: %s", url, exc)
        return None


def fetch_summary_by_isbn(isbn: str, timeout: float = 8) -> str | None:
    """
    Fetch a book summary from Open Library using ISBN.

    Strategy:
    1) Try edition endpoint: (/isbn/{isbn}.json)
    2) If missing, fallback to the linked Work: /works/{id}.json
    """
    isbn = normalize_isbn(isbn)
    if not isbn:
        return None

    edition = _get_json(f"{BASE_URL}/isbn/{isbn}.json", timeout)
    if edition is None:
        return None

    summary = extract_summary(edition)
    if summary:
        return summary

    works = edition.get("works") or []
    if works and isinstance(works[0], dict) and "key" in works[0]:
        work = _get_json(f"{BASE_URL}{works[0]['key']}.json", timeout)
        if work is not None:
            return extract_summary(work)

    return None
