"""Rule validation engine for the formstate engine.

This module provides a ValidationEngine that evaluates a field's rules against
its current value and produces a structured FieldError, or None when the
value passes.

Rules run in a fixed order: required, min/max, minLength/maxLength, pattern,
then the custom validate rule(s). In "firstError" criteria mode evaluation
stops at the first failure; in "all" mode every rule runs and the failures
are collected into FieldError.types.

Custom validate rules may be plain callables or coroutine functions. A rule
that raises is recorded as a failure of that rule instead of aborting the
validation round.
"""

import inspect
import itertools
import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser

from formstate.errors import ExternalValidatorError, FieldError
from formstate.options import SchemaValidateOptions
from formstate.registry import Field, NamedValidate, RuleValue, SingleValidate, ValidationOptions
from formstate.types import ROOT_ERROR_KEY, CriteriaMode, ErrorType, ValidateResult, Validator

logger = logging.getLogger(__name__)

# (error type, message) pair for one failing rule
Failure = Tuple[str, str]


def is_empty_value(value: Any) -> bool:
    """Whether value counts as missing for the required rule.

    None, the empty string, False and empty collections are empty; 0 is not.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return value is False
    if isinstance(value, (str, list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
    return None


def compare_bound(value: Any, bound: Any) -> Optional[int]:
    """Three-way compare value against a min/max bound.

    Numbers (and numeric strings) compare numerically; otherwise both sides
    are read as dates. Returns None when the pair is not comparable.

    Examples:
        >>> compare_bound(10, 18)
        -1
        >>> compare_bound("2024-05-01", "2024-01-01")
        1
    """
    number, limit = _as_number(value), _as_number(bound)
    if number is not None and limit is not None:
        if math.isnan(number) or math.isnan(limit):
            return None
        return (number > limit) - (number < limit)

    moment, limit_moment = _as_datetime(value), _as_datetime(bound)
    if moment is None or limit_moment is None:
        return None
    if (moment.tzinfo is None) != (limit_moment.tzinfo is None):
        moment = moment.replace(tzinfo=None)
        limit_moment = limit_moment.replace(tzinfo=None)
    return (moment > limit_moment) - (moment < limit_moment)


def _check_required(rules: ValidationOptions, value: Any) -> Optional[Failure]:
    rule = rules.required
    if rule is None or not rule.value:
        return None
    if is_empty_value(value):
        return ErrorType.REQUIRED.value, rule.message
    return None


def _check_range(rules: ValidationOptions, value: Any) -> Optional[Failure]:
    if rules.min is None and rules.max is None:
        return None
    if value is None or value == "":
        return None

    if rules.max is not None:
        order = compare_bound(value, rules.max.value)
        if order is not None and order > 0:
            return ErrorType.MAX.value, rules.max.message
    if rules.min is not None:
        order = compare_bound(value, rules.min.value)
        if order is not None and order < 0:
            return ErrorType.MIN.value, rules.min.message
    return None


def _length_bound(rule: RuleValue) -> int:
    return int(rule.value)


def _check_length(rules: ValidationOptions, value: Any) -> Optional[Failure]:
    if rules.min_length is None and rules.max_length is None:
        return None
    if not isinstance(value, (str, list, tuple)):
        return None

    length = len(value)
    if rules.max_length is not None and length > _length_bound(rules.max_length):
        return ErrorType.MAX_LENGTH.value, rules.max_length.message
    if rules.min_length is not None and length < _length_bound(rules.min_length):
        return ErrorType.MIN_LENGTH.value, rules.min_length.message
    return None


def _check_pattern(rules: ValidationOptions, value: Any) -> Optional[Failure]:
    if rules.pattern is None or not isinstance(value, str):
        return None
    if rules.pattern.value.search(value) is None:
        return ErrorType.PATTERN.value, rules.pattern.message
    return None


_SYNC_CHECKS = (_check_required, _check_range, _check_length, _check_pattern)


def validate_failure(name: str, result: ValidateResult) -> Optional[Failure]:
    """Interpret a validate rule's return value.

    False fails with an empty message, a non-empty string fails with that
    message, anything else passes.
    """
    if isinstance(result, str):
        return (name, result) if result else None
    if result is False:
        return name, ""
    return None


class ValidationRounds:
    """Monotonic per-field round counters for discarding stale results.

    Every validation invocation for a field is issued a round number; a
    result may only be applied while its round is still the latest one
    issued for that field.

    Examples:
        >>> rounds = ValidationRounds()
        >>> first = rounds.issue("email")
        >>> second = rounds.issue("email")
        >>> rounds.is_current("email", first)
        False
        >>> rounds.is_current("email", second)
        True
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}

    def issue(self, name: str) -> int:
        round_id = next(self._counter)
        self._latest[name] = round_id
        return round_id

    def is_current(self, name: str, round_id: int) -> bool:
        return self._latest.get(name) == round_id

    def supersede(self, names: Iterable[str]) -> None:
        """Invalidate every in-flight round for names."""
        for name in names:
            if name in self._latest:
                self._latest[name] = next(self._counter)

    def supersede_all(self) -> None:
        self.supersede(list(self._latest))


class ValidationEngine:
    """Per-field rule evaluator.

    Attributes:
        criteria_mode: FIRST_ERROR stops at the first failing rule, ALL
                       collects every failure

    Examples:
        >>> import asyncio
        >>> engine = ValidationEngine()
        >>> field = Field(name="age", rules=ValidationOptions(required=True, min=18))
        >>> asyncio.run(engine.validate_field(field, 10)).type
        'min'
        >>> asyncio.run(engine.validate_field(field, 20)) is None
        True
    """

    def __init__(self, criteria_mode: CriteriaMode = CriteriaMode.FIRST_ERROR) -> None:
        self.criteria_mode = CriteriaMode(criteria_mode)

    @property
    def validate_all(self) -> bool:
        return self.criteria_mode == CriteriaMode.ALL

    async def validate_field(self, field: Field, value: Any) -> Optional[FieldError]:
        """Evaluate field's rules against value.

        Args:
            field: Field whose rules are evaluated
            value: Current value resolved from the value tree

        Returns:
            None when every rule passes, otherwise a FieldError
        """
        rules = field.rules
        failures: List[Failure] = []

        for check in _SYNC_CHECKS:
            failure = check(rules, value)
            if failure is not None:
                failures.append(failure)
                if not self.validate_all:
                    return self._build_error(failures)

        if rules.validate is not None:
            failures.extend(await self._run_validate(rules.validate, value))

        return self._build_error(failures) if failures else None

    async def _run_validate(self, rule: Any, value: Any) -> List[Failure]:
        if isinstance(rule, SingleValidate):
            validators = [(ErrorType.VALIDATE.value, rule.validator)]
        elif isinstance(rule, NamedValidate):
            validators = list(rule.validators.items())
        else:
            raise TypeError(f"unsupported validate rule {rule!r}")

        failures: List[Failure] = []
        for name, validator in validators:
            failure = await self._call_validator(name, validator, value)
            if failure is not None:
                failures.append(failure)
                if not self.validate_all:
                    break
        return failures

    async def _call_validator(self, name: str, validator: Validator, value: Any) -> Optional[Failure]:
        try:
            result = validator(value)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.warning("Validate rule %r raised, recording it as a failure", name, exc_info=True)
            return name, str(exc)
        return validate_failure(name, result)

    def _build_error(self, failures: List[Failure]) -> FieldError:
        error_type, message = failures[0]
        types = None
        if self.validate_all and len(failures) > 1:
            types = {}
            for failed_type, failed_message in failures:
                types.setdefault(failed_type, failed_message or True)
        return FieldError(type=error_type, message=message, types=types)

    async def validate_with_resolver(
        self,
        resolver: Any,
        values: Dict[str, Any],
        options: SchemaValidateOptions,
    ) -> Dict[str, FieldError]:
        """Delegate whole-form validation to an external resolver.

        A resolver that raises does not abort the round: the failure is
        reported as a form-level error under ROOT_ERROR_KEY.

        Returns:
            Mapping of field name to FieldError
        """
        try:
            result = resolver.validate(values, options, self.criteria_mode)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            error = ExternalValidatorError(exc)
            logger.exception("External validator raised during a validation round")
            return {ROOT_ERROR_KEY: FieldError(type=ErrorType.SCHEMA, message=str(error))}
        return dict(result or {})


__all__ = [
    "ValidationEngine",
    "ValidationRounds",
    "compare_bound",
    "is_empty_value",
    "validate_failure",
]
