"""
Shared utility functions for karyolgf.

This module provides common functionality used by the batch interface:
- Logging setup
- Karyotype input readers
- CSV output
- Progress reporting
"""

import csv
import logging
import sys
import time
from pathlib import Path


# =============================================================================
# LOGGING
# =============================================================================

def setup_logging(
    log_file: str | Path | None = None,
    level: str = "INFO",
    name: str = "karyolgf"
) -> logging.Logger:
    """
    Configure logging for karyolgf.

    Args:
        log_file: Path to log file. If None, logs to stderr only.
        level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        name: Logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
        ))
        logger.addHandler(file_handler)

    return logger


# =============================================================================
# KARYOTYPE INPUT
# =============================================================================

def read_karyotypes(filepath: str | Path, column: str | None = None) -> list[str]:
    """
    Read karyotype strings from a file.

    Plain text files hold one karyotype per line; blank lines and lines
    starting with '#' are skipped. With a column name the file is read as
    CSV and that column is used.

    Args:
        filepath: Input file
        column: CSV column holding karyotypes

    Returns:
        Karyotype strings in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the CSV column is missing
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Karyotype file not found: {filepath}")

    karyotypes = []
    with open(filepath, newline='') as f:
        if column:
            reader = csv.DictReader(f)
            if column not in (reader.fieldnames or []):
                raise ValueError(
                    f"Column '{column}' not found in {filepath}. "
                    f"Available: {', '.join(reader.fieldnames or [])}"
                )
            for row in reader:
                value = (row[column] or '').strip()
                if value:
                    karyotypes.append(value)
        else:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    karyotypes.append(line)

    return karyotypes


def validate_karyotypes(karyotypes: list[str]) -> list[str]:
    """
    Check a batch before interpretation.

    Returns:
        List of warning/error messages (empty if all valid)
    """
    messages = []
    if not karyotypes:
        messages.append("ERROR: No karyotypes found in input")
        return messages

    seen = set()
    for number, karyotype in enumerate(karyotypes, start=1):
        if karyotype in seen:
            messages.append(f"WARNING: Duplicate karyotype on row {number}: {karyotype}")
        seen.add(karyotype)

    return messages


# =============================================================================
# OUTPUT WRITERS
# =============================================================================

def write_csv(
    filepath: str | Path,
    data: list[dict],
    fieldnames: list[str],
    header_comment: str | None = None
) -> None:
    """
    Write rows of dicts to a CSV file.

    Args:
        filepath: Output file path
        data: List of dictionaries to write
        fieldnames: Column names (determines order)
        header_comment: Optional '#' comment block at the top of the file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w', newline='') as f:
        if header_comment:
            for line in header_comment.strip().split('\n'):
                f.write(f"# {line}\n")

        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(data)


# =============================================================================
# PROGRESS REPORTING
# =============================================================================

class ProgressReporter:
    """
    Report progress through a batch of karyotypes.

    Example:
        progress = ProgressReporter(total=len(rows), desc="Interpreting")
        for row in rows:
            interpret(row)
            progress.update()
        progress.finish()
    """

    def __init__(
        self,
        total: int,
        desc: str = "Processing",
        interval_pct: float = 10.0,
        enabled: bool = True,
        logger: logging.Logger | None = None
    ):
        self.total = total
        self.desc = desc
        self.interval = max(1, int(total * interval_pct / 100))
        self.enabled = enabled
        self.logger = logger

        self.count = 0
        self.start_time = time.time()

    def update(self, n: int = 1) -> None:
        """Advance by n karyotypes."""
        self.count += n
        if self.enabled and (self.count % self.interval == 0 or self.count == self.total):
            pct = int(100 * self.count / self.total) if self.total else 100
            self._emit(f"{self.desc}: {pct}% ({self.count:,}/{self.total:,})")

    def finish(self) -> None:
        """Report completion."""
        if not self.enabled:
            return
        elapsed = time.time() - self.start_time
        rate = self.count / elapsed if elapsed > 0 else 0
        self._emit(
            f"{self.desc}: Complete! {self.count:,} karyotypes in "
            f"{elapsed:.1f}s ({rate:,.0f}/sec)"
        )

    def _emit(self, msg: str) -> None:
        if self.logger:
            self.logger.info(msg)
        else:
            print(msg, flush=True)
