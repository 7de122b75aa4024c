"""FormController orchestrator for the formstate engine.

This module provides the FormController class that coordinates the field
registry, validation engine, error tree, dirty/touched tracker, field-array
manager, watcher and form-state projector for one form instance.

Every piece of per-form state is owned by the controller instance, so any
number of independent forms can coexist. A binding layer drives it with
register / handle_change / handle_blur / handle_submit and reads back values,
errors and form_state.

Usage:
    >>> import asyncio
    >>> form = FormController(mode="onChange")
    >>> bind = form.register("age", {"required": True, "min": 18})
    >>> asyncio.run(form.set_value("age", 10, should_validate=True))
    False
    >>> form.get_error("age").type
    'min'
    >>> asyncio.run(form.set_value("age", 20, should_validate=True))
    True
    >>> form.get_error("age") is None
    True
"""

import asyncio
import inspect
import logging
from copy import deepcopy
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from formstate.error_tree import ErrorTree
from formstate.errors import FieldError
from formstate.field_array import FieldArray, FieldArrayManager
from formstate.form_state import FormState, FormStateProjector, FormStateView
from formstate.options import FormOptions
from formstate.paths import (
    MISSING,
    canonical_path,
    flatten,
    get_value,
    is_path_prefix,
    set_value,
)
from formstate.registry import Field, FieldRegistry
from formstate.resolvers import JsonSchemaResolver
from formstate.tracking import DirtyTouchedTracker
from formstate.types import (
    ROOT_ERROR_KEY,
    WATCH_ALL,
    ErrorType,
    FieldNames,
    FieldValues,
    FormStateFlag,
    InteractionEvent,
)
from formstate.validation import ValidationEngine, ValidationRounds
from formstate.watcher import WatchCallback, Watcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of one submission.

    Attributes:
        is_valid: Whether the validation round left the error tree empty
        values: Nested values the submission validated (and passed on)
        errors: Nested error tree after the validation round
    """
    is_valid: bool
    values: FieldValues
    errors: Dict[str, Any]


class FormController:
    """Form-state engine for one form instance.

    Attributes:
        options: The FormOptions this form was configured with
        form_state: Lazily computed aggregate state (dirty, touched, ...)

    Examples:
        >>> form = FormController(default_values={"name": "Ada"})
        >>> form.set_value("name", "Grace")
        >>> form.form_state.dirty
        True
        >>> form.reset()
        >>> form.form_state.dirty
        False
    """

    def __init__(self, options: Optional[FormOptions] = None, **overrides: Any):
        """Initialize the form.

        Args:
            options: FormOptions; keyword overrides are applied on top
            **overrides: FormOptions fields (mode, re_validate_mode,
                         criteria_mode, default_values, resolver,
                         resolver_options)
        """
        if options is None:
            options = FormOptions(**overrides)
        elif overrides:
            options = replace(options, **overrides)
        if isinstance(options.resolver, Mapping):
            options = replace(options, resolver=JsonSchemaResolver(dict(options.resolver)))
        self.options = options

        self._values: FieldValues = deepcopy(dict(options.default_values))
        self._registry = FieldRegistry()
        self._errors = ErrorTree()
        self._tracker = DirtyTouchedTracker(options.default_values)
        self._rounds = ValidationRounds()
        self._engine = ValidationEngine(options.criteria_mode)
        self._watcher = Watcher()
        self._arrays = FieldArrayManager(
            self._values,
            self._registry,
            self._errors,
            self._tracker,
            self._rounds,
            on_change=self._on_array_change,
        )

        self._is_submitted = False
        self._is_submitting = False
        self._submit_count = 0

        self._projector = FormStateProjector({
            FormStateFlag.DIRTY: lambda: self._tracker.compute_dirty(self._values),
            FormStateFlag.IS_SUBMITTED: lambda: self._is_submitted,
            FormStateFlag.SUBMIT_COUNT: lambda: self._submit_count,
            FormStateFlag.TOUCHED: lambda: self._tracker.touched,
            FormStateFlag.IS_SUBMITTING: lambda: self._is_submitting,
            FormStateFlag.IS_VALID: self._errors.is_empty,
        })
        self.form_state = FormStateView(self._projector)

    # Registration

    def register(
        self,
        name: Union[str, Mapping[str, Any]],
        rules: Any = None,
    ) -> Optional[Callable[[Any], None]]:
        """Register a field (or a mapping of field names to rules).

        Re-registering merges the new rules over the existing ones.

        Args:
            name: Field name, or a mapping of field names to rules
            rules: ValidationOptions or a camelCase rule mapping

        Returns:
            A binding setter that attaches a handle to the field, or None
            when a mapping of fields was registered

        Raises:
            InvalidPathError: If a field name is malformed
        """
        if isinstance(name, Mapping):
            for field_name, field_rules in name.items():
                self._registry.register(self._field_name(field_name), field_rules)
            self._projector.invalidate(FormStateFlag.IS_VALID)
            return None

        name = self._field_name(name)
        self._registry.register(name, rules)
        self._projector.invalidate(FormStateFlag.IS_VALID)

        def bind(handle: Any) -> None:
            self._registry.attach(name, handle)

        return bind

    def unregister(self, names: FieldNames) -> None:
        """Remove fields with their errors, touched state and watchers.

        Values are kept. Unknown names are ignored.
        """
        if isinstance(names, str):
            names = [names]
        removed = self._registry.unregister([self._field_name(name) for name in names])
        if not removed:
            return
        for name in removed:
            self._errors.clear_error(name)
            self._tracker.clear_touched(name)
            self._watcher.detach(name)
        self._rounds.supersede(removed)
        self._projector.invalidate(FormStateFlag.IS_VALID, FormStateFlag.TOUCHED)

    def get_field(self, name: str) -> Optional[Field]:
        return self._registry.get_field(self._field_name(name))

    def _field_name(self, name: str) -> str:
        """Registry key for name: numeric segments into lists become indices."""
        return canonical_path(self._values, name)

    # Values

    def get_values(self, nest: bool = False) -> Dict[str, Any]:
        """Current values.

        Args:
            nest: Return the nested value tree instead of a flat mapping

        Returns:
            With nest, a copy of the whole tree. Otherwise a flat mapping
            of each registered field name to its value, plus the leaf paths
            of values not covered by any registered field.
        """
        if nest:
            return deepcopy(self._values)

        registered = self._registry.names()
        flat = {name: deepcopy(get_value(self._values, name)) for name in registered}
        for path, value in flatten(self._values).items():
            if not any(is_path_prefix(name, path) for name in registered):
                flat[path] = deepcopy(value)
        return flat

    def set_value(
        self,
        name: Union[str, List[Mapping[str, Any]]],
        value: Any = None,
        should_validate: bool = False,
    ) -> Optional[Awaitable[bool]]:
        """Write a value (or several) into the value tree.

        Args:
            name: Field name, or a list of {name: value} mappings
            value: Value to write when name is a field name
            should_validate: Validate the written fields afterwards

        Returns:
            With should_validate, an awaitable resolving to whether the
            written fields are valid; otherwise None
        """
        if isinstance(name, str):
            names = [name]
            self._commit(name, value)
        else:
            names = []
            for entry in name:
                for field_name, field_value in entry.items():
                    self._commit(field_name, field_value)
                    names.append(field_name)

        self._after_commit(names)
        if should_validate:
            return self.trigger_validation(names)
        return None

    def _commit(self, name: str, value: Any) -> None:
        set_value(self._values, name, deepcopy(value))

    def _after_commit(self, names: List[str]) -> None:
        self._projector.invalidate(FormStateFlag.DIRTY)
        self._watcher.notify(self._values, names)

    def is_field_dirty(self, name: str) -> bool:
        return self._tracker.is_field_dirty(self._values, name)

    # Watching

    def watch(self, path: Union[str, List[str], None] = None, default: Any = None) -> Any:
        """Current value at path, falling back to the default values.

        Args:
            path: Field name, list of field names, or None / "*" for all
            default: Fallback for paths that hold no value yet; for a list
                     of names, a mapping of name to fallback

        Returns:
            The value, a mapping of name to value, or the whole tree
        """
        if path is None or path == WATCH_ALL:
            if self._values:
                return deepcopy(self._values)
            return deepcopy(default) if default is not None else self._tracker.baseline

        if isinstance(path, str):
            return self._watch_one(path, default)

        defaults = default if isinstance(default, Mapping) else {}
        return {name: self._watch_one(name, defaults.get(name)) for name in path}

    def _watch_one(self, path: str, default: Any) -> Any:
        found = get_value(self._values, path, MISSING)
        if found is not MISSING:
            return deepcopy(found)
        if default is not None:
            return deepcopy(default)
        return self._tracker.default_at(path)

    def subscribe(self, path: str, callback: WatchCallback) -> Callable[[], None]:
        """Subscribe to value changes at path (or "*"); returns unsubscribe."""
        return self._watcher.subscribe(path, callback)

    # Validation

    async def trigger_validation(
        self,
        payload: Optional[FieldNames] = None,
        should_notify: bool = True,
    ) -> bool:
        """Validate the given field(s), or the whole form.

        Args:
            payload: Field name or names; None validates every field
            should_notify: Push the new isValid to observers immediately;
                           when False it is recomputed on its next read

        Returns:
            Whether the validated fields are valid (for the whole form:
            whether the error tree is empty)
        """
        whole_form = payload is None
        if whole_form:
            names = self._registry.names()
        elif isinstance(payload, str):
            names = [self._field_name(payload)]
        else:
            names = [self._field_name(name) for name in payload]

        if self.options.resolver is not None:
            is_valid = await self._validate_with_resolver(names, whole_form)
        else:
            if whole_form:
                # A full round rebuilds the tree from the registered fields
                self._errors.retain(names)
            results = await asyncio.gather(*(self._validate_field(name) for name in names))
            is_valid = self._errors.is_empty() if whole_form else all(results)

        self._projector.invalidate(FormStateFlag.IS_VALID, eager=should_notify)
        return is_valid

    async def _validate_field(self, name: str) -> bool:
        field = self._registry.get_field(name)
        if field is None:
            return True

        round_id = self._rounds.issue(name)
        error = await self._engine.validate_field(field, get_value(self._values, name))
        if not self._rounds.is_current(name, round_id):
            logger.debug("Discarding stale validation round %d for %s", round_id, name)
            return error is None

        self._errors.record(name, error)
        return error is None

    async def _validate_with_resolver(self, names: List[str], whole_form: bool) -> bool:
        round_ids = {name: self._rounds.issue(name) for name in names}
        root_round = self._rounds.issue(ROOT_ERROR_KEY)
        found = await self._engine.validate_with_resolver(
            self.options.resolver,
            deepcopy(self._values),
            self.options.resolver_options,
        )

        current = [name for name in names if self._rounds.is_current(name, round_ids[name])]
        root_current = self._rounds.is_current(ROOT_ERROR_KEY, root_round)
        if len(current) < len(names) or not root_current:
            logger.debug(
                "Discarding stale resolver results for %d of %d fields",
                len(names) - len(current),
                len(names),
            )

        if whole_form and root_current and len(current) == len(names):
            self._errors.replace(found)
            return self._errors.is_empty()

        for name in current:
            self._errors.clear_error(name)
            for path, error in found.items():
                if is_path_prefix(name, path):
                    self._errors.set_error(path, error)
        if root_current:
            self._errors.record(ROOT_ERROR_KEY, found.get(ROOT_ERROR_KEY))

        return ROOT_ERROR_KEY not in found and not any(
            is_path_prefix(name, path) for name in names for path in found
        )

    # Errors

    @property
    def errors(self) -> Dict[str, Any]:
        """Nested copy of the error tree."""
        return self._errors.as_nested()

    def get_error(self, name: str) -> Optional[FieldError]:
        return self._errors.get_error(name)

    def set_error(
        self,
        name: str,
        type: Union[ErrorType, str] = ErrorType.MANUAL,
        message: str = "",
        types: Optional[Dict[str, Union[str, bool]]] = None,
    ) -> None:
        """Inject a manual error, e.g. one reported by a server on submit."""
        self._errors.set_error(
            name, FieldError(type=type, message=message, types=types, is_manual=True)
        )
        self._projector.invalidate(FormStateFlag.IS_VALID)

    def clear_error(self, names: Optional[FieldNames] = None) -> None:
        """Clear the errors of one or several fields, or all errors."""
        self._errors.clear_error(names)
        self._projector.invalidate(FormStateFlag.IS_VALID)

    # Interaction

    async def handle_change(self, name: str, value: Any) -> Optional[bool]:
        """Commit a value change coming from a binding.

        Returns:
            The validation result when the configured mode validated the
            field, otherwise None
        """
        self._commit(name, value)
        self._after_commit([name])
        if self._should_validate(name, InteractionEvent.CHANGE):
            return await self.trigger_validation(name)
        return None

    async def handle_blur(self, name: str) -> Optional[bool]:
        """Mark a field touched and validate it if the mode asks for it."""
        if self._tracker.mark_touched(name):
            self._projector.invalidate(FormStateFlag.TOUCHED)
        if self._should_validate(name, InteractionEvent.BLUR):
            return await self.trigger_validation(name)
        return None

    def _should_validate(self, name: str, event: InteractionEvent) -> bool:
        return self.options.should_validate(
            event,
            is_submitted=self._is_submitted,
            has_error=self._errors.get_error(name) is not None,
        )

    # Submission

    def handle_submit(
        self, callback: Optional[Callable[[FieldValues], Any]] = None
    ) -> Callable[[], Awaitable[SubmitResult]]:
        """Wrap callback in a submit handler.

        Awaiting the returned handler runs a full validation round and
        invokes callback with the values only if the error tree is empty.
        """
        async def submit() -> SubmitResult:
            return await self.submit(callback)

        return submit

    async def submit(
        self, callback: Optional[Callable[[FieldValues], Any]] = None
    ) -> SubmitResult:
        """Run one submission.

        isSubmitting is true for the duration; afterwards, whether or not
        validation passed or the callback raised, isSubmitting returns to
        false, submitCount is incremented and isSubmitted is set. Exceptions
        raised by callback propagate to the caller.
        """
        self._is_submitting = True
        self._projector.invalidate(FormStateFlag.IS_SUBMITTING)
        try:
            is_valid = await self.trigger_validation()
            values = self.get_values(nest=True)
            if is_valid and callback is not None:
                outcome = callback(deepcopy(values))
                if inspect.isawaitable(outcome):
                    await outcome
            else:
                logger.debug("Submission skipped callback: %d field errors", len(self._errors))
            return SubmitResult(is_valid=is_valid, values=values, errors=self.errors)
        finally:
            self._is_submitting = False
            self._submit_count += 1
            self._is_submitted = True
            self._projector.invalidate(
                FormStateFlag.IS_SUBMITTING,
                FormStateFlag.SUBMIT_COUNT,
                FormStateFlag.IS_SUBMITTED,
            )

    # Field arrays

    def field_array(self, path: str) -> FieldArray:
        """Handle for the field array at path (created on first use)."""
        return FieldArray(self._arrays, self._field_name(path))

    def _on_array_change(self, path: str) -> None:
        self._projector.invalidate(
            FormStateFlag.DIRTY, FormStateFlag.TOUCHED, FormStateFlag.IS_VALID
        )
        self._watcher.notify(self._values, [path])

    # Reset

    def reset(self, values: Optional[Mapping[str, Any]] = None) -> None:
        """Restore values to defaults (or new defaults) and clear all state.

        Touched, errors and submit counters are cleared, pending validation
        rounds are superseded and field-array rows get fresh ids.
        """
        if values is not None:
            self.options = replace(self.options, default_values=deepcopy(dict(values)))
        defaults = self.options.default_values

        self._tracker.reset_baseline(defaults)
        self._values.clear()
        self._values.update(deepcopy(dict(defaults)))
        self._errors.clear_all()
        self._rounds.supersede_all()
        self._arrays.reset()
        self._is_submitted = False
        self._submit_count = 0

        logger.debug("Form reset with %d default values", len(defaults))
        self._projector.invalidate()
        self._watcher.notify_all(self._values, self._watcher.paths())

    def snapshot(self) -> FormState:
        return self._projector.snapshot()


__all__ = [
    "FormController",
    "SubmitResult",
]
