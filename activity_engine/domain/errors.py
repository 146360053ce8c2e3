from __future__ import annotations

from activity_engine.domain.state_machine import ActivityState


class ActivityError(Exception):
    pass


class NotFoundError(ActivityError):
    pass


class UnauthorizedError(ActivityError):
    pass


class ValidationError(ActivityError):
    pass


class ConflictError(ActivityError):
    pass


class InvalidTransitionError(ConflictError):
    def __init__(self, source: ActivityState, target: ActivityState | str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"illegal transition: {source} -> {target}")


class StaleStateError(ConflictError):
    def __init__(
        self,
        activity_id: int,
        expected: ActivityState,
        actual: ActivityState | None = None,
        *,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        self.activity_id = activity_id
        self.expected = expected
        self.actual = actual
        self.expected_version = expected_version
        self.actual_version = actual_version
        if actual == expected and expected_version is not None:
            message = (
                f"activity {activity_id} was modified concurrently "
                f"(version {actual_version}, expected {expected_version})"
            )
        elif actual is None:
            message = f"activity {activity_id} is no longer in state {expected}"
        else:
            message = f"activity {activity_id} is in state {actual}, expected {expected}"
        super().__init__(message)


class MissingJustificationError(ActivityError):
    def __init__(self, field_name: str, required: int, actual: int) -> None:
        self.field_name = field_name
        self.required = required
        self.actual = actual
        super().__init__(f"{field_name} requires at least {required} characters (got {actual})")


class MissingEvidenceError(ActivityError):
    def __init__(self, required: int, actual: int) -> None:
        self.required = required
        self.actual = actual
        super().__init__(
            f"completion requires at least {required} evidence attachment(s) (got {actual})"
        )


class OperationCancelledError(ActivityError):
    pass


class GatewayUnavailableError(ActivityError):
    pass
