"""Projection of the aggregate form state.

FormStateProjector computes the externally observed flags (dirty, submit
counters, touched, isSubmitting, isValid) on demand and remembers which flags
the consumer has read. When an operation may have changed a flag, the flag is
recomputed right away only if it is in that observed set; otherwise its
cached value is dropped and recomputed on the next read. Either way a read
returns the same value, only the recomputation timing differs.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Mapping, Set, Union

from formstate.types import FormStateFlag


@dataclass(frozen=True)
class FormState:
    """Snapshot of the aggregate form state.

    Attributes:
        dirty: Values structurally differ from the default snapshot
        is_submitted: A submission has completed since the last reset
        submit_count: Completed submissions since the last reset
        touched: Tree of booleans for blurred fields
        is_submitting: A submission is in progress
        is_valid: The error tree was empty after the latest validation
    """
    dirty: bool
    is_submitted: bool
    submit_count: int
    touched: Dict[str, Any]
    is_submitting: bool
    is_valid: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "dirty": self.dirty,
            "isSubmitted": self.is_submitted,
            "submitCount": self.submit_count,
            "touched": self.touched,
            "isSubmitting": self.is_submitting,
            "isValid": self.is_valid,
        }


class FormStateProjector:
    """Lazily computed, observation-aware form-state flags.

    Args:
        computers: One zero-argument function per FormStateFlag

    Examples:
        >>> calls = []
        >>> def compute_dirty():
        ...     calls.append("dirty")
        ...     return False
        >>> computers = {flag: (lambda: 0) for flag in FormStateFlag}
        >>> computers[FormStateFlag.DIRTY] = compute_dirty
        >>> projector = FormStateProjector(computers)
        >>> projector.invalidate(FormStateFlag.DIRTY)
        >>> calls
        []
        >>> projector.read(FormStateFlag.DIRTY)
        False
        >>> projector.invalidate(FormStateFlag.DIRTY)
        >>> calls
        ['dirty', 'dirty']
    """

    def __init__(self, computers: Mapping[FormStateFlag, Callable[[], Any]]):
        missing = set(FormStateFlag) - set(computers)
        if missing:
            raise ValueError(f"missing computers for flags: {sorted(f.value for f in missing)}")
        self._computers: Dict[FormStateFlag, Callable[[], Any]] = dict(computers)
        self._cache: Dict[FormStateFlag, Any] = {}
        self._observed: Set[FormStateFlag] = set()

    @property
    def observed(self) -> FrozenSet[FormStateFlag]:
        """Flags read since they were last invalidated."""
        return frozenset(self._observed)

    def read(self, flag: Union[FormStateFlag, str]) -> Any:
        """Return flag's value, marking it observed."""
        flag = FormStateFlag(flag)
        self._observed.add(flag)
        if flag not in self._cache:
            self._cache[flag] = self._computers[flag]()
        return self._cache[flag]

    def invalidate(self, *flags: FormStateFlag, eager: bool = True) -> None:
        """Signal that flags (all flags when none given) may have changed.

        Observed flags are recomputed now when eager is true; every other
        flag is recomputed on its next read. Each invalidated flag leaves the
        observed set, so only flags read again before the next commit are
        recomputed eagerly then.
        """
        for flag in flags or tuple(FormStateFlag):
            if eager and flag in self._observed:
                self._cache[flag] = self._computers[flag]()
            else:
                self._cache.pop(flag, None)
            self._observed.discard(flag)

    def snapshot(self) -> FormState:
        """Read every flag into a FormState."""
        return FormState(
            dirty=self.read(FormStateFlag.DIRTY),
            is_submitted=self.read(FormStateFlag.IS_SUBMITTED),
            submit_count=self.read(FormStateFlag.SUBMIT_COUNT),
            touched=self.read(FormStateFlag.TOUCHED),
            is_submitting=self.read(FormStateFlag.IS_SUBMITTING),
            is_valid=self.read(FormStateFlag.IS_VALID),
        )


class FormStateView:
    """Attribute access to a projector's flags, as exposed by form_state."""

    def __init__(self, projector: FormStateProjector):
        self._projector = projector

    @property
    def dirty(self) -> bool:
        return self._projector.read(FormStateFlag.DIRTY)

    @property
    def is_submitted(self) -> bool:
        return self._projector.read(FormStateFlag.IS_SUBMITTED)

    @property
    def submit_count(self) -> int:
        return self._projector.read(FormStateFlag.SUBMIT_COUNT)

    @property
    def touched(self) -> Dict[str, Any]:
        return self._projector.read(FormStateFlag.TOUCHED)

    @property
    def is_submitting(self) -> bool:
        return self._projector.read(FormStateFlag.IS_SUBMITTING)

    @property
    def is_valid(self) -> bool:
        return self._projector.read(FormStateFlag.IS_VALID)

    def snapshot(self) -> FormState:
        return self._projector.snapshot()

    def __repr__(self) -> str:
        observed = sorted(flag.value for flag in self._projector.observed)
        return f"FormStateView(observed={observed})"


__all__ = [
    "FormState",
    "FormStateProjector",
    "FormStateView",
]
