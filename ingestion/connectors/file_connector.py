"""
Local file connector (CSV / JSON) backed by pandas
"""

import pandas as pd
from pathlib import Path
from typing import List, Dict, Any, Optional
from core.exceptions import ExtractionError, LoadError
from models.base import DataSourceType
from schemas.configs import ExtractionConfig, FileFormat
from schemas.entities import DataSource
from ingestion.connectors.base import DataConnector, Record, apply_extraction
import logging

logger = logging.getLogger(__name__)


def _records_from_frame(df: pd.DataFrame) -> List[Record]:
    """Convert a DataFrame to plain dicts, NaN cells becoming None."""
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


class FileConnector(DataConnector):
    """
    Read and write `file` data sources.

    Supports:
    - CSV (header row required) and JSON (array of objects)
    - Append or truncate on load
    """

    source_type = DataSourceType.FILE

    async def probe(self, source: DataSource) -> Dict[str, Any]:
        path = Path(source.config.file_path)
        if not path.exists():
            raise ExtractionError(
                f"File not found: {path}",
                context={"source_id": source.id, "file_path": str(path)}
            )
        return {
            "type": source.type.value,
            "file_path": str(path),
            "format": source.config.format.value,
            "size_bytes": path.stat().st_size,
        }

    def _read(self, path: Path, file_format: FileFormat) -> pd.DataFrame:
        if file_format == FileFormat.JSON:
            return pd.read_json(path, orient="records", dtype=False, convert_dates=False)
        return pd.read_csv(path)

    async def extract(self, source: DataSource, extraction: Optional[ExtractionConfig] = None) -> List[Record]:
        path = Path(source.config.file_path)
        if not path.exists():
            raise ExtractionError(
                f"File not found: {path}",
                context={"source_id": source.id, "file_path": str(path)}
            )

        logger.info(f"Reading {source.config.format.value.upper()} from {path}")

        try:
            df = self._read(path, source.config.format)
        except Exception as e:
            raise ExtractionError(
                f"Failed to read {path}: {str(e)}",
                context={"source_id": source.id, "file_path": str(path)},
                original_exception=e
            )

        # Normalize column names
        df.columns = df.columns.astype(str).str.strip()

        return apply_extraction(_records_from_frame(df), extraction or source.extraction)

    async def load(self, destination: DataSource, records: List[Record], truncate: bool = False) -> int:
        if not records and not truncate:
            return 0

        path = Path(destination.config.file_path)
        file_format = destination.config.format
        df = pd.DataFrame.from_records(records)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if not records:
                # truncate with nothing to write leaves an empty destination
                path.write_text("[]" if file_format == FileFormat.JSON else "")
                logger.info(f"Truncated {path}")
                return 0
            if file_format == FileFormat.JSON:
                if path.exists() and not truncate:
                    df = pd.concat([self._read(path, file_format), df], ignore_index=True)
                df.to_json(path, orient="records")
            else:
                append = path.exists() and not truncate
                df.to_csv(path, mode="a" if append else "w", header=not append, index=False)
        except Exception as e:
            raise LoadError(
                f"Failed to write {path}: {str(e)}",
                context={"destination_id": destination.id, "records_to_load": len(records)},
                original_exception=e
            )

        logger.info(f"Wrote {len(records)} records to {path}")
        return len(records)
