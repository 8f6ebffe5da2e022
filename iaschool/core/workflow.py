# iaschool/core/workflow.py
"""Server-side status transition tables.

Each lifecycle entity declares which target statuses are reachable from each
current status. Statuses missing from the table are terminal. Re-requesting
the current status is accepted as a no-op so side-car fields (notes, dates)
can still be edited without a status change.
"""
import enum
import logging
from typing import Dict, Iterable, Mapping, Set, Union

from .exceptions import InvalidTransition

logger = logging.getLogger(__name__)

StatusLike = Union[enum.Enum, str]


def _value(status: StatusLike) -> str:
    return status.value if isinstance(status, enum.Enum) else str(status)


class TransitionTable:
    def __init__(self, entity: str, transitions: Mapping[StatusLike, Iterable[StatusLike]]):
        self.entity = entity
        self._transitions: Dict[str, Set[str]] = {
            _value(current): {_value(target) for target in targets}
            for current, targets in transitions.items()
        }

    def allowed_from(self, current: StatusLike) -> Set[str]:
        return set(self._transitions.get(_value(current), set()))

    def is_terminal(self, current: StatusLike) -> bool:
        return not self._transitions.get(_value(current))

    def can_transition(self, current: StatusLike, target: StatusLike) -> bool:
        if _value(current) == _value(target):
            return True
        return _value(target) in self._transitions.get(_value(current), set())

    def validate(self, current: StatusLike, target: StatusLike) -> bool:
        """Raise InvalidTransition unless the move is allowed.

        Returns True when the status actually changes.
        """
        if not self.can_transition(current, target):
            logger.warning(
                f"Rejected {self.entity} transition {_value(current)} -> {_value(target)}"
            )
            raise InvalidTransition(
                self.entity, _value(current), _value(target), self.allowed_from(current)
            )
        return _value(current) != _value(target)
