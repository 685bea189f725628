"""Rendering of guest collections into CSV, clipboard text and tables."""
import csv
import io
import re
from typing import Dict, Iterable, List, Optional, Tuple

from processor.models import PLACEHOLDER, NormalizedGuest

BOM = '\ufeff'

COLUMN_LABELS = {
    'ko': ('이름', '트위터', '링크드인', '인스타그램', '소개'),
    'en': ('name', 'twitter', 'linkedin', 'instagram', 'bio'),
}
DEFAULT_LOCALE = 'ko'

FILENAME_PREFIX = 'luma-participants'
FALLBACK_FILENAME_ID = 'export'

_CLIPBOARD_UNSAFE = re.compile(r'[\t\r\n]+')
_FILENAME_UNSAFE = re.compile(r'[^A-Za-z0-9._-]+')


def column_labels(locale: str = DEFAULT_LOCALE) -> Tuple[str, ...]:
    """
    Return header labels for a locale.

    Raises:
        ValueError: If the locale has no labels
    """
    try:
        return COLUMN_LABELS[locale]
    except KeyError:
        raise ValueError(
            f"Unsupported locale {locale!r}, expected one of "
            f"{sorted(COLUMN_LABELS)}"
        )


def to_csv(guests: Iterable[NormalizedGuest], locale: str = DEFAULT_LOCALE) -> str:
    """
    Render guests as CSV text.

    The header row is written as plain comma-joined labels. Every data
    field is double-quoted with embedded quotes doubled; rows are joined by
    a bare newline with no trailing newline.

    Args:
        guests: Normalized guest collection
        locale: Header label locale

    Returns:
        CSV text without byte-order marker
    """
    buffer = io.StringIO()
    buffer.write(','.join(column_labels(locale)) + '\n')
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    for guest in guests:
        writer.writerow(guest.as_row())
    return buffer.getvalue().rstrip('\n')


def with_bom(text: str) -> str:
    """Prefix text with a UTF-8 byte-order marker for file persistence."""
    return text if text.startswith(BOM) else BOM + text


def to_clipboard_text(guests: Iterable[NormalizedGuest], locale: str = DEFAULT_LOCALE) -> str:
    """
    Render guests as tab-separated text for the clipboard.

    Tabs and line breaks inside values are collapsed to a single space so
    each guest stays on one line with five columns.

    Args:
        guests: Normalized guest collection
        locale: Header label locale

    Returns:
        Header line followed by one line per guest
    """
    lines = ['\t'.join(column_labels(locale))]
    for guest in guests:
        lines.append('\t'.join(
            _CLIPBOARD_UNSAFE.sub(' ', value) for value in guest.as_row()
        ))
    return '\n'.join(lines)


def profile_url(field: str, value: str) -> Optional[str]:
    """
    Build the profile link for a social field.

    Args:
        field: One of "twitter", "linkedin", "instagram"
        value: Normalized field value

    Returns:
        Profile URL, or None for the placeholder
    """
    if value == PLACEHOLDER:
        return None
    if field == 'twitter':
        return f"https://twitter.com/{value.lstrip('@')}"
    if field == 'instagram':
        return f"https://instagram.com/{value.lstrip('@')}"
    if field == 'linkedin':
        return f"https://linkedin.com{value}"
    raise ValueError(f"Unknown profile field: {field}")


def to_table_rows(guests: Iterable[NormalizedGuest]) -> List[Dict[str, Optional[str]]]:
    """Build display rows with profile links for each guest."""
    rows = []
    for guest in guests:
        rows.append({
            'name': guest.name,
            'twitter': guest.twitter,
            'twitter_url': profile_url('twitter', guest.twitter),
            'linkedin': guest.linkedin,
            'linkedin_url': profile_url('linkedin', guest.linkedin),
            'instagram': guest.instagram,
            'instagram_url': profile_url('instagram', guest.instagram),
            'bio': guest.bio,
        })
    return rows


def render_table(
    guests: Iterable[NormalizedGuest],
    locale: str = DEFAULT_LOCALE,
    max_width: int = 40
) -> str:
    """
    Render guests as a fixed-width text table for terminal display.

    Args:
        guests: Normalized guest collection
        locale: Header label locale
        max_width: Cells longer than this are truncated with "..."

    Returns:
        Table text, header and separator first
    """
    header = column_labels(locale)
    rows = [
        tuple(_truncate(_CLIPBOARD_UNSAFE.sub(' ', value), max_width)
              for value in guest.as_row())
        for guest in guests
    ]

    widths = [len(label) for label in header]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row)]

    def fmt(cells):
        return '  '.join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    lines = [fmt(header), '  '.join('-' * width for width in widths)]
    lines.extend(fmt(row) for row in rows)
    return '\n'.join(lines)


def csv_filename(event_id: Optional[str]) -> str:
    """
    Build the CSV artifact name for an event.

    Args:
        event_id: Event identifier, may be None

    Returns:
        "luma-participants-<event_id>.csv", or the generic export name
    """
    safe_id = _FILENAME_UNSAFE.sub('_', event_id).strip('._') if event_id else ''
    return f"{FILENAME_PREFIX}-{safe_id or FALLBACK_FILENAME_ID}.csv"


def _truncate(value: str, max_width: int) -> str:
    if len(value) <= max_width:
        return value
    return value[:max_width - 3] + '...'
