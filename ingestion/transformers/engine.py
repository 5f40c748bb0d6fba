"""
Apply typed transformation rules to a working dataset of records
"""

import copy
import inspect
import re
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Tuple
from core.exceptions import TransformationError
from models.base import TransformationType
from schemas.configs import (
    AggregateConfig,
    AggregateFunction,
    CustomConfig,
    FilterCondition,
    FilterConfig,
    FilterLogic,
    FilterOperator,
    JoinConfig,
    MapConfig,
)
from schemas.entities import Transformation
import logging

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
CustomFunction = Callable[[List[Record], Dict[str, Any]], Any]
ReferenceLoader = Callable[[str], Awaitable[List[Record]]]


class TransformationOutcome(NamedTuple):
    records: List[Record]
    rejected: int = 0


class TransformationEngine:
    """
    Apply transformations to records.

    Handles:
    - filter: keep records for which the conditions hold (and/or logic)
    - map: copy/rename fields, cardinality unchanged
    - aggregate: group and reduce, one record per group
    - join: left join against a reference dataset, cardinality unchanged
    - custom: call a function registered by name

    Input records are never mutated. Any failure is raised as
    TransformationError.
    """

    def __init__(
        self,
        reference_loader: Optional[ReferenceLoader] = None,
        custom_functions: Optional[Dict[str, CustomFunction]] = None
    ):
        self.reference_loader = reference_loader
        self.custom_functions: Dict[str, CustomFunction] = dict(custom_functions or {})
        self._handlers = {
            TransformationType.FILTER: self._apply_filter,
            TransformationType.MAP: self._apply_map,
            TransformationType.AGGREGATE: self._apply_aggregate,
            TransformationType.JOIN: self._apply_join,
            TransformationType.CUSTOM: self._apply_custom,
        }

    def register_function(self, name: str, func: CustomFunction) -> None:
        """Make `func(records, parameters)` available to custom transformations."""
        self.custom_functions[name] = func

    async def apply(self, transformation: Transformation, records: List[Record]) -> TransformationOutcome:
        handler = self._handlers[transformation.type]
        try:
            return await handler(transformation.config, records)
        except TransformationError:
            raise
        except Exception as e:
            raise TransformationError(
                f"{transformation.type.value.capitalize()} error in '{transformation.name}': {str(e)}",
                context={
                    "transformation_id": transformation.id,
                    "transformation_type": transformation.type.value,
                },
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Filter
    # ------------------------------------------------------------------

    async def _apply_filter(self, config: FilterConfig, records: List[Record]) -> TransformationOutcome:
        kept = [record for record in records if self._matches(record, config)]
        return TransformationOutcome(kept, rejected=len(records) - len(kept))

    def _matches(self, record: Record, config: FilterConfig) -> bool:
        if not config.conditions:
            return True
        results = [evaluate_condition(record, condition) for condition in config.conditions]
        return all(results) if config.logic == FilterLogic.AND else any(results)

    # ------------------------------------------------------------------
    # Map
    # ------------------------------------------------------------------

    async def _apply_map(self, config: MapConfig, records: List[Record]) -> TransformationOutcome:
        mapped = []
        for record in records:
            result = dict(record) if config.include_original else {}
            for mapping in config.mappings:
                if mapping.source in record:
                    result[mapping.target] = record[mapping.source]
            mapped.append(result)
        return TransformationOutcome(mapped)

    # ------------------------------------------------------------------
    # Aggregate
    # ------------------------------------------------------------------

    async def _apply_aggregate(self, config: AggregateConfig, records: List[Record]) -> TransformationOutcome:
        groups: Dict[Tuple, List[Record]] = {}
        for record in records:
            key = tuple(record.get(field) for field in config.group_by)
            groups.setdefault(key, []).append(record)

        summaries = []
        for key, group in groups.items():
            summary = dict(zip(config.group_by, key))
            for aggregation in config.aggregations:
                summary[aggregation.as_] = aggregate(aggregation.function, aggregation.field, group)
            summaries.append(summary)

        return TransformationOutcome(summaries)

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    async def _apply_join(self, config: JoinConfig, records: List[Record]) -> TransformationOutcome:
        reference = await self._reference_records(config)

        # first match wins
        index: Dict[Tuple, Record] = {}
        for row in reference:
            key = tuple(row.get(condition.right_field) for condition in config.conditions)
            index.setdefault(key, row)

        joined = []
        for record in records:
            result = dict(record)
            key = tuple(record.get(condition.left_field) for condition in config.conditions)
            match = index.get(key)
            if match is not None:
                if config.include_fields:
                    for include in config.include_fields:
                        result[include.as_ or include.field] = match.get(include.field)
                else:
                    for field, value in match.items():
                        result.setdefault(field, value)
            joined.append(result)

        return TransformationOutcome(joined)

    async def _reference_records(self, config: JoinConfig) -> List[Record]:
        if config.reference_source_id is None:
            return config.reference_data
        if self.reference_loader is None:
            raise TransformationError(
                "Join references a data source but no reference loader is configured",
                context={"reference_source_id": config.reference_source_id}
            )
        return await self.reference_loader(config.reference_source_id)

    # ------------------------------------------------------------------
    # Custom
    # ------------------------------------------------------------------

    async def _apply_custom(self, config: CustomConfig, records: List[Record]) -> TransformationOutcome:
        func = self.custom_functions.get(config.function)
        if func is None:
            raise TransformationError(
                f"Custom transformation function '{config.function}' is not registered",
                context={"function": config.function}
            )

        result = func(copy.deepcopy(records), dict(config.parameters))
        if inspect.isawaitable(result):
            result = await result

        if not isinstance(result, list):
            raise TransformationError(
                f"Custom transformation function '{config.function}' must return a list of records",
                context={"function": config.function, "returned": type(result).__name__}
            )
        return TransformationOutcome(result)


def evaluate_condition(record: Record, condition: FilterCondition) -> bool:
    """Evaluate one filter condition. Missing or null fields only satisfy is_null."""
    operator = condition.operator
    value = condition.value
    field_value = record.get(condition.field)

    if field_value is None:
        return operator == FilterOperator.IS_NULL

    if operator == FilterOperator.EQUALS:
        return field_value == value
    if operator == FilterOperator.NOT_EQUALS:
        return field_value != value
    if operator == FilterOperator.GREATER_THAN:
        return field_value > value
    if operator == FilterOperator.LESS_THAN:
        return field_value < value
    if operator == FilterOperator.GREATER_THAN_OR_EQUALS:
        return field_value >= value
    if operator == FilterOperator.LESS_THAN_OR_EQUALS:
        return field_value <= value
    if operator == FilterOperator.IN:
        return isinstance(value, list) and field_value in value
    if operator == FilterOperator.NOT_IN:
        return isinstance(value, list) and field_value not in value
    if operator == FilterOperator.CONTAINS:
        return str(value) in str(field_value)
    if operator == FilterOperator.NOT_CONTAINS:
        return str(value) not in str(field_value)
    if operator == FilterOperator.STARTS_WITH:
        return str(field_value).startswith(str(value))
    if operator == FilterOperator.ENDS_WITH:
        return str(field_value).endswith(str(value))
    if operator == FilterOperator.IS_NULL:
        return False
    if operator == FilterOperator.IS_NOT_NULL:
        return True
    if operator == FilterOperator.BETWEEN:
        low, high = value
        return low <= field_value <= high
    if operator == FilterOperator.REGEX:
        return re.search(str(value), str(field_value)) is not None

    raise ValueError(f"Unknown operator: {operator}")


def aggregate(function: AggregateFunction, field: str, group: List[Record]) -> Any:
    """Reduce one group. Null values are ignored by SUM/AVG/MIN/MAX."""
    if function == AggregateFunction.COUNT:
        return len(group)
    if function == AggregateFunction.FIRST:
        return group[0].get(field)
    if function == AggregateFunction.LAST:
        return group[-1].get(field)
    if function == AggregateFunction.ARRAY_AGG:
        return [record.get(field) for record in group]

    values = [record.get(field) for record in group if record.get(field) is not None]
    if function == AggregateFunction.SUM:
        return sum(values)
    if function == AggregateFunction.AVG:
        return sum(values) / len(values) if values else None
    if function == AggregateFunction.MIN:
        return min(values) if values else None
    if function == AggregateFunction.MAX:
        return max(values) if values else None

    raise ValueError(f"Unknown aggregate function: {function}")
