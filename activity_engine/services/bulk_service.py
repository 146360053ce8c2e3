from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from activity_engine.domain.context import CallContext
from activity_engine.domain.errors import (
    ActivityError,
    GatewayUnavailableError,
    OperationCancelledError,
    ValidationError,
)
from activity_engine.domain.models import Activity
from activity_engine.domain.roles import ActorTeam, Principal
from activity_engine.infra.db import check_db_ready
from activity_engine.services.activity_service import ActivityService

logger = logging.getLogger(__name__)

BULK_MAX_WORKERS = int(os.getenv("BULK_MAX_WORKERS", "4"))
BULK_CALL_TIMEOUT_SECONDS = float(os.getenv("BULK_CALL_TIMEOUT_SECONDS", "60"))


@dataclass(frozen=True)
class BulkItemError:
    activity_id: int
    error_message: str


@dataclass
class BulkResult:
    succeeded_count: int = 0
    updated_activities: list[Activity] = field(default_factory=list)
    errors: list[BulkItemError] = field(default_factory=list)
    cancelled: bool = False


class BulkActivityService:
    """Runs one single-item operation per activity id, each in its own unit of work.

    Items never share a transaction: a failure on one id is reported in
    ``errors`` and the others still land.
    """

    def __init__(
        self,
        activity_service: ActivityService | None = None,
        max_workers: int | None = None,
    ) -> None:
        self._activities = activity_service or ActivityService()
        self._max_workers = max(1, max_workers or BULK_MAX_WORKERS)

    def bulk_assign(
        self,
        principal: Principal,
        activity_ids: Iterable[int],
        responsible_principal: str | None = None,
        responsible_secondary: list[str] | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> BulkResult:
        if responsible_principal is None and responsible_secondary is None:
            raise ValidationError("bulk assignment requires a principal or secondary responsible")

        def _assign(activity_id: int, item_ctx: CallContext) -> Activity:
            return self._activities.assign_responsible(
                principal,
                activity_id,
                responsible_principal,
                responsible_secondary,
                ctx=item_ctx,
            )

        return self._run("assign", activity_ids, _assign, ctx)

    def bulk_transfer(
        self,
        principal: Principal,
        activity_ids: Iterable[int],
        destination_team: ActorTeam,
        justification: str,
        new_responsible: str | None = None,
        *,
        ctx: CallContext | None = None,
    ) -> BulkResult:
        def _transfer(activity_id: int, item_ctx: CallContext) -> Activity:
            row, _ = self._activities.transfer_activity(
                principal,
                activity_id,
                destination_team,
                justification,
                new_responsible,
                ctx=item_ctx,
            )
            return row

        return self._run("transfer", activity_ids, _transfer, ctx)

    def _run(
        self,
        label: str,
        activity_ids: Iterable[int],
        operation: Callable[[int, CallContext], Activity],
        ctx: CallContext | None,
    ) -> BulkResult:
        ids = list(dict.fromkeys(activity_ids))
        result = BulkResult()
        if not ids:
            return result
        ctx = ctx if ctx is not None else CallContext.with_timeout(BULK_CALL_TIMEOUT_SECONDS)
        if not check_db_ready():
            raise GatewayUnavailableError("activity store unavailable")

        def _item(activity_id: int) -> Activity:
            ctx.check()
            return operation(activity_id, ctx)

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(ids))) as pool:
            futures: dict[int, Future[Activity]] = {
                activity_id: pool.submit(_item, activity_id) for activity_id in ids
            }
            gateway_failures = 0
            for activity_id in ids:
                try:
                    row = futures[activity_id].result()
                except OperationCancelledError as exc:
                    result.cancelled = True
                    result.errors.append(BulkItemError(activity_id, str(exc)))
                    continue
                except GatewayUnavailableError as exc:
                    gateway_failures += 1
                    logger.warning("bulk %s failed for activity %s: %s", label, activity_id, exc)
                    result.errors.append(BulkItemError(activity_id, str(exc)))
                    continue
                except ActivityError as exc:
                    logger.warning("bulk %s failed for activity %s: %s", label, activity_id, exc)
                    result.errors.append(BulkItemError(activity_id, str(exc)))
                    continue
                except SQLAlchemyError as exc:
                    gateway_failures += 1
                    logger.warning("bulk %s store error for activity %s: %s", label, activity_id, exc)
                    result.errors.append(BulkItemError(activity_id, "activity store error"))
                    continue
                result.updated_activities.append(row)
                result.succeeded_count += 1

        if ctx.is_cancelled():
            result.cancelled = True
        if gateway_failures == len(ids):
            raise GatewayUnavailableError(f"bulk {label} failed: activity store unavailable")

        logger.info(
            "bulk %s: %s succeeded, %s failed%s",
            label,
            result.succeeded_count,
            len(result.errors),
            " (cancelled)" if result.cancelled else "",
        )
        return result
