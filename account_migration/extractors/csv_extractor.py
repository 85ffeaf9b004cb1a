"""Record source backed by a delimited file snapshot."""

import csv
import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .base import BaseExtractor
from ..models.migration import WorkflowProfile

logger = logging.getLogger(__name__)


class CSVExtractor(BaseExtractor):
    """
    Reads a CSV export of pending records.

    The file is normally produced by ``TableExporter.export_pending`` and
    uses the same column names as the profile's select query.
    """

    def __init__(
        self,
        profile: WorkflowProfile,
        file_path: Optional[str] = None,
        encoding: str = "utf-8",
        delimiter: str = ","
    ):
        """
        Initialize the CSV extractor.

        Args:
            profile: Workflow profile with the column mapping
            file_path: Snapshot file, defaults to the profile's snapshot_file
            encoding: File encoding
            delimiter: Fallback delimiter if sniffing fails
        """
        super().__init__(profile)
        self.file_path = Path(file_path or profile.snapshot_file)
        self.encoding = encoding
        self.delimiter = delimiter

    @property
    def source_name(self) -> str:
        return f"file:{self.file_path}"

    def read_rows(self) -> List[Mapping[str, Any]]:
        rows = []
        with open(self.file_path, "r", encoding=self.encoding, newline="") as f:
            sample = f.read(8192)
            f.seek(0)

            try:
                dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
                delimiter = dialect.delimiter
            except csv.Error:
                delimiter = self.delimiter

            reader = csv.DictReader(f, delimiter=delimiter)
            for row in reader:
                # Skip blank trailing lines
                if not any(str(value).strip() for value in row.values() if value):
                    continue
                rows.append(row)

        logger.debug(f"Loaded {len(rows)} rows from {self.file_path}")
        return rows
