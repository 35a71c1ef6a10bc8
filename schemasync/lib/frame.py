"""pandas and pandera bridges.

Reading: CSV files and DataFrames become ``Dataset`` objects with raw text
cells (no dtype inference, empty fields stay ``""``).

Exporting: a ``Schema`` becomes a pandera ``DataFrameSchema`` so the same
field constraints can be checked in bulk on a typed frame.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import pandera as pa
from pandera import Check, Column, DataFrameSchema

from schemasync.lib.model import Cell, ColumnModel, Dataset, Row
from schemasync.lib.schema import Field, FieldType, PackageMetadata, Schema

logger = logging.getLogger(__name__)

__all__ = [
    "dataset_from_frame",
    "dataset_to_frame",
    "read_csv_dataset",
    "create_pandera_schema",
    "validate_frame",
]

_PANDAS_DTYPES: Dict[str, Any] = {
    FieldType.STRING.value: str,
    FieldType.INTEGER.value: "Int64",
    FieldType.NUMBER.value: float,
    FieldType.BOOLEAN.value: "boolean",
    FieldType.DATE.value: "datetime64[ns]",
    FieldType.DATETIME.value: "datetime64[ns]",
    FieldType.YEAR.value: "Int64",
}


# ============================================
# Reading
# ============================================


def dataset_from_frame(
    df: pd.DataFrame,
    name: str,
    metadata: Optional[PackageMetadata] = None,
) -> Dataset:
    """Build a dataset from a DataFrame; NaN/NA cells become None."""
    column_names = [str(c) for c in df.columns]
    cleaned = df.astype(object).where(df.notna(), None)
    rows = [
        Row([None if value is None else Cell(value) for value in record])
        for record in cleaned.itertuples(index=False, name=None)
    ]
    logger.debug("Built dataset '%s' from frame: %d rows x %d columns", name, len(rows), len(column_names))
    return Dataset(name, ColumnModel.from_names(column_names), rows, metadata)


def read_csv_dataset(
    path: Union[str, Path],
    name: Optional[str] = None,
    metadata: Optional[PackageMetadata] = None,
    **read_options: Any,
) -> Dataset:
    """Read a CSV file into a dataset of raw text cells.

    Args:
        path: CSV file to read
        name: Dataset name (defaults to the file stem)
        metadata: Optional package to attach
        **read_options: Extra ``pandas.read_csv`` arguments (e.g. sep=";")
    """
    csv_path = Path(path)
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, **read_options)
    logger.info("Read %d rows from %s", len(df), csv_path)
    return dataset_from_frame(df, name or csv_path.stem, metadata)


def dataset_to_frame(dataset: Dataset) -> pd.DataFrame:
    """Raw cell values in column-model order."""
    with dataset.lock.read_locked():
        names = dataset.column_model.column_names
        columns = {
            name: [None if cell is None else cell.value for cell in dataset.column_cells(i)]
            for i, name in enumerate(names)
        }
    return pd.DataFrame(columns, columns=names)


# ============================================
# pandera export
# ============================================


def _checks_for(target: Field) -> List[Check]:
    checks: List[Check] = []
    constraints = target.constraints
    if "minimum" in constraints:
        checks.append(Check.greater_than_or_equal_to(constraints["minimum"], name="minimum"))
    if "maximum" in constraints:
        checks.append(Check.less_than_or_equal_to(constraints["maximum"], name="maximum"))
    if "minLength" in constraints or "maxLength" in constraints:
        checks.append(
            Check.str_length(
                min_value=constraints.get("minLength"),
                max_value=constraints.get("maxLength"),
                name="length",
            )
        )
    if "pattern" in constraints:
        checks.append(Check.str_matches(rf"(?:{constraints['pattern']})\Z", name="pattern"))
    if "enum" in constraints:
        checks.append(Check.isin(list(constraints["enum"]), name="enum"))
    return checks


def create_pandera_schema(schema: Schema) -> DataFrameSchema:
    """Create a pandera schema from a table schema.

    Field types map to pandas dtypes where one exists (types without one,
    such as ``object`` or ``yearmonth``, are left untyped). Constraints map
    to pandera checks; ``required`` and ``unique`` map to the column's
    ``nullable`` and ``unique`` flags.

    Example:
        pandera_schema = create_pandera_schema(dataset.schema)
        validated_df = pandera_schema.validate(df)
    """
    pandera_columns: Dict[str, Column] = {}
    for target in schema:
        constraints = target.constraints
        ignored = set(constraints) - {
            "minimum", "maximum", "minLength", "maxLength", "pattern", "enum", "required", "unique",
        }
        if ignored:
            logger.debug("Field '%s': no pandera mapping for %s", target.name, sorted(ignored))

        pandera_columns[target.name] = Column(
            _PANDAS_DTYPES.get(target.type),
            checks=_checks_for(target),
            nullable=not bool(constraints.get("required", False)),
            unique=bool(constraints.get("unique", False)),
            required=True,
        )
    return DataFrameSchema(columns=pandera_columns, coerce=True)


def validate_frame(df: pd.DataFrame, schema: Schema) -> List[Dict[str, Any]]:
    """Validate a frame against ``schema`` with pandera.

    Values listed in the schema's missing values are treated as nulls.

    Returns:
        Failure cases as dicts with ``column``, ``check``, ``index`` and
        ``failure_case`` keys; empty when the frame passes
    """
    missing = list(schema.missing_values)
    prepared = df.astype(object).mask(df.isin(missing), None) if missing else df
    try:
        create_pandera_schema(schema).validate(prepared, lazy=True)
    except pa.errors.SchemaErrors as e:
        failures = [
            {
                "column": case.get("column"),
                "check": case.get("check"),
                "index": case.get("index"),
                "failure_case": case.get("failure_case"),
            }
            for case in e.failure_cases.to_dict("records")
        ]
        logger.info("pandera found %d failure case(s)", len(failures))
        return failures
    return []
