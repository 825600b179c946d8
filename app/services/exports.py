"""
CSV exports of royalty line items and catalogs.

Output is UTF-8, comma-delimited, quoted only where a field contains a
comma, quote or newline (embedded quotes doubled). Amounts keep their
full stored precision.
"""

import csv
import io
from typing import Iterable, List, Optional

from app.services.money import to_plain_string
from app.services.repository import RoyaltyRecord, TrackRecord

ROYALTY_EXPORT_HEADERS = [
    "Song Title",
    "ISWC",
    "Composer",
    "Date",
    "Territory",
    "Source",
    "Usage Count",
    "Gross",
    "Admin %",
    "Net",
]

CATALOG_EXPORT_HEADERS = ["Song Title", "Composer Name", "ISRC", "Artist", "Split"]


def _render(header: List[str], rows: Iterable[List[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(header)
    writer.writerows(rows)
    return output.getvalue()


def royalty_row(item: RoyaltyRecord) -> List[str]:
    return [
        item.title,
        item.code,
        item.composer,
        item.broadcast_date.isoformat() if item.broadcast_date else "",
        item.territory,
        item.source,
        str(item.usage_count),
        to_plain_string(item.gross_amount),
        to_plain_string(item.admin_percent),
        to_plain_string(item.net_amount),
    ]


def export_royalties_csv(items: Iterable[RoyaltyRecord]) -> str:
    """One line per royalty item, in the given order."""
    return _render(ROYALTY_EXPORT_HEADERS, (royalty_row(item) for item in items))


def export_catalog_csv(tracks: Iterable[TrackRecord], artist_name: Optional[str] = None) -> str:
    """One line per track. Missing track artist falls back to `artist_name`."""
    return _render(
        CATALOG_EXPORT_HEADERS,
        (
            [
                track.title,
                track.composer_name or "",
                track.isrc or "",
                track.artist_name or artist_name or "",
                track.split or "100",
            ]
            for track in tracks
        ),
    )


def export_filename(artist_name: str, suffix: str) -> str:
    """Filesystem-safe attachment name, e.g. "Jane_Doe_2024_Q1_royalties.csv"."""
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in artist_name.strip()) or "artist"
    return f"{safe}_{suffix}.csv"
