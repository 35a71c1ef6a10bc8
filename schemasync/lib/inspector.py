"""Validation inspector: compile per-column checks, then run them.

An inspection works in two passes:

1. Compile. For every requested column, look up its field in the schema
   and build the check list: the type/format check first, then one check
   per declared constraint in the field's constraint order. Unknown
   constraints and rejected payloads are logged and skipped.
2. Execute. Run every compiled check over every row. Findings come out in
   column (request) order, then check order, then row order.

Nothing in either pass aborts the run: the inspector always returns the
best report it can, with recovered errors listed in ``Report.errors``.
Only cancellation propagates.

Usage:
```python
from schemasync.lib.inspector import ValidationInspector

report = ValidationInspector().inspect(dataset, ["Year", "Value"])
for finding in report.findings:
    print(finding.row, finding.code, finding.message)
```
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field as PydanticField

from schemasync.lib.checks import ColumnTarget, Finding, TypeOrFormatValidator, Validator
from schemasync.lib.errors import (
    ConstructionError,
    SchemaError,
    SchemaMissing,
    SchemaSyncError,
    UnknownConstraint,
)
from schemasync.lib.model import Dataset, Row
from schemasync.lib.observability import InspectionMetrics
from schemasync.lib.registry import DEFAULT_REGISTRY, ConstraintRegistry

logger = logging.getLogger(__name__)

__all__ = [
    "InspectOptions",
    "CompiledColumn",
    "Report",
    "ValidationInspector",
    "inspect",
]

REPORT_KEY = "validation-reports"


class InspectOptions(BaseModel):
    """Options of one inspection run.

    Accepts the camelCase keys of the inbound JSON request.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    max_workers: int = PydanticField(default=1, ge=1, le=64, alias="maxWorkers")
    cancel_event: Optional[threading.Event] = PydanticField(default=None, exclude=True)


@dataclass(frozen=True)
class CompiledColumn:
    """The check plan of one column. Immutable once compiled."""

    column_name: str
    validators: Tuple[Validator, ...]

    @property
    def codes(self) -> List[str]:
        return [v.code for v in self.validators]


@dataclass
class Report:
    """Findings of one inspection plus the errors recovered on the way."""

    findings: List[Finding] = field(default_factory=list)
    errors: List[SchemaSyncError] = field(default_factory=list)
    metrics: Optional[InspectionMetrics] = field(default=None, compare=False)

    @property
    def passed(self) -> bool:
        return not self.findings

    def findings_for(self, column: str) -> List[Finding]:
        return [f for f in self.findings if f.column == column]

    def to_dict(self, include_errors: bool = False) -> Dict[str, Any]:
        """JSON-shaped report: ``{"validation-reports": [...]}``."""
        result: Dict[str, Any] = {REPORT_KEY: [f.to_dict() for f in self.findings]}
        if include_errors:
            result["errors"] = [e.to_dict() for e in self.errors]
        return result

    def __len__(self) -> int:
        return len(self.findings)


class ValidationInspector:
    """Compiles and runs column checks against a dataset.

    Args:
        registry: Constraint registry used to resolve constraint names
        message_templates: Per-code message templates that replace the
            built-in ones, e.g. {"minimum-constraint": "{value} too small"}
    """

    def __init__(
        self,
        registry: ConstraintRegistry = DEFAULT_REGISTRY,
        message_templates: Optional[Mapping[str, str]] = None,
    ):
        self.registry = registry
        self.message_templates = dict(message_templates or {})

    def inspect(
        self,
        dataset: Dataset,
        column_names: Sequence[str],
        options: Optional[InspectOptions] = None,
    ) -> Report:
        """Validate the named columns of ``dataset``.

        Holds the dataset's read lock for the whole run, so a concurrent
        schema synchronization can never interleave with it.

        Raises:
            InspectionCancelled: If ``options.cancel_event`` is set mid-run
        """
        options = options or InspectOptions()
        metrics = InspectionMetrics(dataset.name)
        report = Report(metrics=metrics)

        logger.info(
            "Starting inspection of '%s' for columns %s",
            dataset.name,
            list(column_names),
        )

        with dataset.lock.read_locked():
            if dataset.schema is None:
                error = SchemaMissing(dataset.name)
                logger.error("%s; returning an empty report", error.message)
                report.errors.append(error)
                return report

            with metrics.time_phase("compile"):
                plan = self.compile(dataset, column_names, report.errors)
            self._log_plan(plan)

            with metrics.time_phase("execute"):
                report.findings = self._execute(dataset.rows, plan, options, metrics)

        metrics.increment("findings", len(report.findings))
        logger.info(
            "Inspection of '%s' finished: %d finding(s), %d recovered error(s)",
            dataset.name,
            len(report.findings),
            len(report.errors),
            extra=metrics.to_log_dict(),
        )
        return report

    # ============================================
    # Compile pass
    # ============================================

    def compile(
        self,
        dataset: Dataset,
        column_names: Sequence[str],
        errors: Optional[List[SchemaSyncError]] = None,
    ) -> List[CompiledColumn]:
        """Build the check plan for every requested column, in order."""
        if dataset.schema is None:
            raise SchemaMissing(dataset.name)
        errors = errors if errors is not None else []
        plan: List[CompiledColumn] = []
        for name in column_names:
            compiled = self.compile_column(dataset, name, errors)
            if compiled is not None:
                plan.append(compiled)
        return plan

    def compile_column(
        self,
        dataset: Dataset,
        column_name: str,
        errors: List[SchemaSyncError],
    ) -> Optional[CompiledColumn]:
        schema = dataset.schema
        target_field = schema.get_field(column_name) if schema else None
        if target_field is None:
            error = SchemaError(f"No field named '{column_name}' in schema", column=column_name)
            logger.warning("Skipping column '%s': not in schema", column_name)
            errors.append(error)
            return None

        column_index = dataset.column_model.get_column_index_by_name(column_name)
        if column_index < 0:
            error = SchemaError(f"No column named '{column_name}' in dataset", column=column_name)
            logger.warning("Skipping column '%s': not in column model", column_name)
            errors.append(error)
            return None

        target = ColumnTarget.resolve(dataset, column_index, target_field)
        validators: List[Validator] = [TypeOrFormatValidator(target)]

        for name, payload in target_field.constraints.items():
            try:
                constructor = self.registry.resolve(name)
            except UnknownConstraint as e:
                logger.warning(
                    "Skipping unknown constraint '%s' on column '%s'",
                    name,
                    column_name,
                )
                e.column = column_name
                errors.append(e)
                continue

            try:
                validator = constructor(target, payload)
            except ConstructionError as e:
                logger.warning("Dropping '%s' check on column '%s': %s", name, column_name, e.reason)
                e.column = column_name
                errors.append(e)
                continue
            except (ValueError, TypeError) as e:
                logger.warning("Dropping '%s' check on column '%s': %s", name, column_name, e)
                errors.append(ConstructionError(name, payload, str(e), column=column_name))
                continue

            validators.append(validator)

        return CompiledColumn(
            column_name=column_name,
            validators=tuple(self._customize(v) for v in validators),
        )

    def _customize(self, validator: Validator) -> Validator:
        template = self.message_templates.get(validator.code)
        if template is None:
            return validator
        return dataclasses.replace(validator, message_template=template)

    def _log_plan(self, plan: Sequence[CompiledColumn]) -> None:
        logger.info("Compiled checks for %d column(s)", len(plan))
        for compiled in plan:
            logger.info("  %s: %s", compiled.column_name, ", ".join(compiled.codes))

    # ============================================
    # Execute pass
    # ============================================

    def _execute(
        self,
        rows: Sequence[Row],
        plan: Sequence[CompiledColumn],
        options: InspectOptions,
        metrics: InspectionMetrics,
    ) -> List[Finding]:
        if options.max_workers > 1 and len(plan) > 1:
            workers = min(options.max_workers, len(plan))
            logger.debug("Checking %d columns on %d workers", len(plan), workers)
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(self._run_column, compiled, rows, options, metrics)
                    for compiled in plan
                ]
                # collected in submission order, so the report matches a sequential run
                per_column = [future.result() for future in futures]
        else:
            per_column = [
                self._run_column(compiled, rows, options, metrics) for compiled in plan
            ]
        return [finding for findings in per_column for finding in findings]

    def _run_column(
        self,
        compiled: CompiledColumn,
        rows: Sequence[Row],
        options: InspectOptions,
        metrics: InspectionMetrics,
    ) -> List[Finding]:
        findings: List[Finding] = []
        for validator in compiled.validators:
            findings.extend(validator.validate(rows, options.cancel_event))
            metrics.increment("cells_checked", len(rows))
        metrics.increment("columns")
        logger.debug("Column '%s': %d finding(s)", compiled.column_name, len(findings))
        return findings


def inspect(
    dataset: Dataset,
    column_names: Sequence[str],
    options: Optional[InspectOptions] = None,
    registry: ConstraintRegistry = DEFAULT_REGISTRY,
) -> Report:
    """Convenience wrapper around ``ValidationInspector.inspect``."""
    return ValidationInspector(registry).inspect(dataset, column_names, options)
