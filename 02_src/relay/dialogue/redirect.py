"""Redirect URL parsing."""

from urllib.parse import parse_qs, urlparse

from ..errors import RedirectUnresolvable

COLLECTION_PREFIXES = ("typebots", "flows")
QUERY_ALIASES = ("t", "typebot", "flow", "id")


def extract_flow_id(url: str) -> str:
    """Extract the target flow id from a redirect URL.

    Accepted shapes, in order:
      - ``.../typebots/<id>`` or ``.../flows/<id>``
      - otherwise the first path segment: ``https://host/<id>/...``
      - a query alias: ``?t=<id>``, ``?typebot=``, ``?flow=``, ``?id=``

    Raises:
        RedirectUnresolvable: if none of the shapes apply.
    """
    if not url or not url.strip():
        raise RedirectUnresolvable("Empty redirect URL")

    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise RedirectUnresolvable(f"Failed to parse redirect URL {url}: {e}") from e

    segments = [segment for segment in parsed.path.split("/") if segment]

    for index, segment in enumerate(segments[:-1]):
        if segment in COLLECTION_PREFIXES:
            return segments[index + 1]

    if segments and segments[0] not in COLLECTION_PREFIXES:
        return segments[0]

    query = parse_qs(parsed.query)
    for alias in QUERY_ALIASES:
        values = query.get(alias)
        if values and values[0]:
            return values[0]

    raise RedirectUnresolvable(f"Could not extract flow id from redirect URL: {url}")
