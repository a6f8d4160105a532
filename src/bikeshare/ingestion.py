# ========================
# src/bikeshare/ingestion.py
# ========================

"""
Data Ingestion Module

Memory-efficient reading of the monthly trip-data CSV exports. Files are
checked against a common schema and streamed in chunks, oldest month first.
"""

import csv
import re
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import SchemaMismatch

logger = logging.getLogger(__name__)

SOURCE_FILE_KEY = '_source_file'
SOURCE_LINE_KEY = '_source_line'

# Excel-saved exports start with a BOM; undecodable bytes are kept as lone
# surrogates so the cleaner can report them against their row
INPUT_ENCODING = 'utf-8-sig'
INPUT_ERRORS = 'surrogateescape'

MONTHLY_FILE_PATTERN = r'^(\d{4})(\d{2})-[\w.]+-tripdata\.csv$'


class CSVReader:
    """
    A memory-efficient CSV reader that reads a file in chunks.
    A year of trip exports runs to several million rows, so rows are
    never loaded all at once.
    """

    def __init__(self, file_path, track_lines: bool = False):
        """
        Initialize the CSV reader.

        Args:
            file_path (str): Path to the CSV file to read
            track_lines (bool): Tag each row with its source file and line number
        """
        self.file_path = str(file_path)
        self.track_lines = track_lines
        self.header = []
        logger.info(f"Initialized CSVReader for file: {self.file_path}")

    def read_header(self) -> List[str]:
        """Read only the header row. Returns an empty list for an empty file."""
        with open(self.file_path, 'r', newline='', encoding=INPUT_ENCODING, errors=INPUT_ERRORS) as f:
            reader = csv.reader(f)
            self.header = next(reader, [])
        return self.header

    def read_in_chunks(self, chunk_size):
        """
        A generator that yields a list of dictionaries for each chunk of data.

        Args:
            chunk_size (int): The number of rows to yield per chunk.

        Yields:
            list[dict]: A list of dictionaries representing a chunk of rows.
        """
        try:
            with open(self.file_path, 'r', newline='', encoding=INPUT_ENCODING, errors=INPUT_ERRORS) as f:
                reader = csv.DictReader(f)
                self.header = reader.fieldnames or []
                logger.debug(f"CSV header: {self.header}")

                chunk = []
                row_count = 0

                for row in reader:
                    if self.track_lines:
                        row[SOURCE_FILE_KEY] = self.file_path
                        row[SOURCE_LINE_KEY] = reader.line_num
                    chunk.append(row)
                    row_count += 1

                    if len(chunk) == chunk_size:
                        logger.debug(f"Yielding chunk with {len(chunk)} rows")
                        yield chunk
                        chunk = []

                if chunk:
                    logger.debug(f"Yielding final chunk with {len(chunk)} rows")
                    yield chunk

                logger.info(f"Rows read from {Path(self.file_path).name}: {row_count}")

        except FileNotFoundError:
            logger.error(f"File '{self.file_path}' was not found")
            raise


def month_key(file_path) -> Optional[str]:
    """Return the 'YYYYMM' prefix of a monthly export file name, if it has one."""
    match = re.match(r'^(\d{6})', Path(file_path).name)
    return match.group(1) if match else None


def chronological_order(file_paths: Sequence) -> List[str]:
    """Sort paths by their YYYYMM prefix; files without one go last, by name."""
    def sort_key(path):
        key = month_key(path)
        return (key is None, key or '', Path(path).name)

    return [str(p) for p in sorted(file_paths, key=sort_key)]


def discover_monthly_files(directory, pattern: str = MONTHLY_FILE_PATTERN) -> List[str]:
    """
    List the monthly trip-data files in a directory.

    Args:
        directory (str): Directory holding the monthly exports
        pattern (str): Regular expression file names must match

    Returns:
        list[str]: Matching file paths, oldest month first
    """
    data_dir = Path(directory)
    if not data_dir.is_dir():
        logger.error(f"Trip data directory does not exist: {data_dir}")
        return []

    regex = re.compile(pattern)
    files = [p for p in data_dir.iterdir() if p.is_file() and regex.match(p.name)]
    logger.info(f"Discovered {len(files)} monthly trip files in {data_dir}")
    return chronological_order(files)


class TripDataLoader:
    """
    Concatenates several monthly exports into one stream of rows.
    All files must share the first file's header exactly.
    """

    def __init__(self, file_paths: Sequence, chunk_size: int = 1000):
        """
        Initialize the loader.

        Args:
            file_paths (list): Paths of the monthly CSV files
            chunk_size (int): Number of rows per yielded chunk
        """
        if not file_paths:
            raise ValueError("At least one input file is required")

        self.file_paths = chronological_order(file_paths)
        self.chunk_size = chunk_size
        self.header: List[str] = []
        self.rows_per_file: Dict[str, int] = {}
        logger.info(f"TripDataLoader initialized with {len(self.file_paths)} files")

    def validate_schema(self) -> List[str]:
        """
        Read every file's header and compare it with the first one.

        Returns:
            list[str]: The shared header

        Raises:
            SchemaMismatch: If a file is empty or its columns differ
        """
        expected = None
        for file_path in self.file_paths:
            header = CSVReader(file_path).read_header()
            if not header:
                raise SchemaMismatch(file_path, expected or [], header)
            if expected is None:
                expected = header
                continue
            if header != expected:
                logger.error(f"Header of {file_path} does not match {self.file_paths[0]}")
                raise SchemaMismatch(file_path, expected, header)

        self.header = list(expected)
        logger.info(f"Schema validated across {len(self.file_paths)} files: {len(self.header)} columns")
        return self.header

    def read_in_chunks(self) -> Iterator[List[dict]]:
        """
        Yield chunks of rows from all files, oldest month first.
        Each row is tagged with its source file and line number.
        """
        if not self.header:
            self.validate_schema()

        for file_path in self.file_paths:
            logger.info(f"Loading {file_path}")
            reader = CSVReader(file_path, track_lines=True)
            row_count = 0
            for chunk in reader.read_in_chunks(self.chunk_size):
                row_count += len(chunk)
                yield chunk
            self.rows_per_file[file_path] = row_count

    @property
    def total_rows(self) -> int:
        return sum(self.rows_per_file.values())
