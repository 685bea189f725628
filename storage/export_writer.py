"""Writer persisting exported guest lists to local files."""
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from exporter.guest_exporter import (
    DEFAULT_LOCALE,
    csv_filename,
    to_clipboard_text,
    to_csv,
    with_bom,
)
from processor.models import NormalizedGuest

logger = logging.getLogger(__name__)


class ExportWriter:
    """Writes CSV and clipboard artifacts into an output directory."""

    def __init__(self, output_dir: Union[str, Path] = '.', locale: str = DEFAULT_LOCALE):
        """
        Initialize the writer.

        Args:
            output_dir: Directory for artifacts, created on first write
            locale: Header label locale
        """
        self.output_dir = Path(output_dir)
        self.locale = locale

    def write_csv(self, guests: Iterable[NormalizedGuest], event_id: Optional[str]) -> Path:
        """
        Write the guest list as a BOM-prefixed UTF-8 CSV file.

        Args:
            guests: Normalized guest collection
            event_id: Event identifier used for the file name

        Returns:
            Path of the written file
        """
        path = self._target(csv_filename(event_id))
        content = with_bom(to_csv(guests, self.locale))
        self._write(path, content)
        logger.info(f"Wrote CSV export to {path}")
        return path

    def write_clipboard(self, guests: Iterable[NormalizedGuest], event_id: Optional[str]) -> Path:
        """
        Write the tab-separated clipboard payload next to the CSV.

        Args:
            guests: Normalized guest collection
            event_id: Event identifier used for the file name

        Returns:
            Path of the written file
        """
        path = self._target(csv_filename(event_id)[:-len('.csv')] + '.tsv')
        self._write(path, to_clipboard_text(guests, self.locale))
        logger.info(f"Wrote clipboard text to {path}")
        return path

    def _target(self, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / filename

    @staticmethod
    def _write(path: Path, content: str) -> None:
        # newline='' keeps the bare \n row separators on every platform
        with path.open('w', encoding='utf-8', newline='') as f:
            f.write(content)
