"""
Normalization of the raw request parameters into validated values.

Listing parameters are never rejected: anything missing or malformed falls
back to a default. Only the Pokemon id of the detail route can fail, and it
is checked before any network call is made.
"""
import re
from dataclasses import dataclass

from fastapi import HTTPException

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 50
SORT_KEYS = ("id", "name", "type")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class InvalidRequestError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


@dataclass(frozen=True)
class ListQuery:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    search: str = ""
    types: tuple[str, ...] = ()
    sort: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _parse_leading_int(raw: str | None) -> int | None:
    """Lenient integer parse: '3' -> 3, '3abc' -> 3, 'abc' -> None."""
    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    if match is None:
        return None
    return int(match.group(1))


def _split_types(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    seen = []
    for token in raw.split(","):
        token = token.strip().lower()
        if token and token not in seen:
            seen.append(token)
    return tuple(seen)


def parse_list_query(
    page: str | None = None,
    limit: str | None = None,
    search: str | None = None,
    types: str | None = None,
    sort: str | None = None,
) -> ListQuery:
    parsed_page = _parse_leading_int(page)
    if parsed_page is None:
        parsed_page = DEFAULT_PAGE

    parsed_limit = _parse_leading_int(limit)
    if parsed_limit is None:
        parsed_limit = DEFAULT_LIMIT

    sort_key = (sort or "").strip().lower()

    return ListQuery(
        page=max(1, parsed_page),
        limit=min(MAX_LIMIT, max(1, parsed_limit)),
        search=(search or "").strip(),
        types=_split_types(types),
        sort=sort_key if sort_key in SORT_KEYS else None,
    )


def parse_pokemon_id(raw: str | None) -> int:
    """Strictly validates the path id. Raises InvalidRequestError (400) on failure."""
    if raw is None or not raw.strip():
        raise InvalidRequestError("Pokemon ID is required")

    value = raw.strip()
    if not (value.isascii() and value.isdigit()) or int(value) < 1:
        raise InvalidRequestError("Invalid Pokemon ID")
    return int(value)


def resource_id_from_url(url: str) -> int:
    """Extracts the numeric id from a canonical reference URL (.../pokemon/25/ -> 25)."""
    segments = [segment for segment in url.split("/") if segment]
    if not segments:
        raise ValueError(f"No id segment in reference URL '{url}'")
    return int(segments[-1])


def matches_search(name: str, url: str, search: str) -> bool:
    """Case-insensitive name match, or substring match on the id segment of the URL."""
    if not search:
        return True
    if search.lower() in name.lower():
        return True
    segments = [segment for segment in url.split("/") if segment]
    return bool(segments) and search in segments[-1]
