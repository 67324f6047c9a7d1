# =============================================================================
# utils/csv_utils.py - CSV utilities
# =============================================================================

import csv
from typing import List, Dict, Any, Optional, Sequence, Tuple
import logging

from core.exceptions import InputUnreadable


class CSVHandler:
    """Utilities for reading and writing CSV files"""

    @staticmethod
    def read_csv(file_path: str, required_columns: Sequence[str] = (),
                 encoding: str = 'utf-8-sig',
                 delimiter: str = ',') -> Tuple[List[Dict[str, Any]], List[str]]:
        """Read CSV file and return list of dictionaries plus the header row"""
        logger = logging.getLogger(__name__)

        try:
            with open(file_path, 'r', newline='', encoding=encoding) as file:
                # Read headers first for validation
                reader = csv.reader(file, delimiter=delimiter)
                headers = next(reader, None)
                if not headers:
                    raise InputUnreadable(f"{file_path} has no header row")

                headers = [header.strip() for header in headers]
                logger.info(f"CSV Headers: {headers}")

                missing = [column for column in required_columns if column not in headers]
                if missing:
                    raise InputUnreadable(
                        f"{file_path} is missing required columns: {', '.join(missing)}",
                        missing_columns=missing
                    )

                # Reset and read with DictReader
                file.seek(0)
                dict_reader = csv.DictReader(file, delimiter=delimiter)
                dict_reader.fieldnames = headers
                next(dict_reader, None)
                data = list(dict_reader)

                logger.info(f"Successfully read {len(data)} records from {file_path}")
                return data, headers

        except FileNotFoundError as e:
            logger.error(f"Input file {file_path} not found")
            raise InputUnreadable(f"Input file {file_path} not found") from e
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"Error reading CSV: {e}")
            raise InputUnreadable(f"Cannot read {file_path}: {e}") from e

    @staticmethod
    def write_csv(data: List[Dict[str, Any]], output_path: str,
                  fieldnames: Optional[List[str]] = None) -> None:
        """Write data to CSV file"""
        logger = logging.getLogger(__name__)

        if fieldnames is None:
            if not data:
                logger.warning("No data to write")
                return
            fieldnames = list(data[0].keys())

        try:
            with open(output_path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(data)

            logger.info(f"Successfully wrote {len(data)} records to {output_path}")

        except Exception as e:
            logger.error(f"Error writing CSV: {e}")
            raise
