# Overview: Bulk approval of one agent's orders, one independent unit of work per order.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

from ..errors import OrderCoreError
from ..validation import require_id
from . import approval_service, order_service
from .lifecycle_service import approval_action_for_target, transition_for


@dataclass
class BulkApprovalResult:
    """
    Outcome of a bulk run. `failed` entries carry the error code so callers
    can retry exactly that subset; `skipped` lists orders never attempted
    because the run was cancelled.
    """
    target_stage: str
    succeeded: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def failed_order_ids(self) -> list[int]:
        return [entry["order_id"] for entry in self.failed]

    def to_dict(self) -> dict:
        return {
            "target_stage": self.target_stage,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "skipped_count": len(self.skipped),
        }


def bulk_approve(
    agent_id: str,
    target_stage: str,
    actor_id: str,
    *,
    should_continue: Callable[[], bool] | None = None,
) -> BulkApprovalResult:
    """
    Move every eligible order of one agent to target_stage.

    Each order goes through the same approval_service call as a single
    approval and commits on its own; a failure is recorded and the loop
    moves on. Cancelling (should_continue() returning False) stops new
    work but leaves committed orders committed.

    Args:
        agent_id: Agent whose orders are processed
        target_stage: leader_approved or admin_approved
        actor_id: Leader or admin performing the approvals

    Raises:
        ValidationError: Unsupported target stage or missing ids
    """
    agent_id = require_id(agent_id, "agent_id")
    actor_id = require_id(actor_id, "actor_id")
    action = approval_action_for_target(target_stage)
    approve = approval_service.APPROVE_BY_ACTION[action]
    eligible_stage = transition_for(action).from_stage

    candidates = order_service.list_order_ids_in_stage(agent_id, eligible_stage)
    result = BulkApprovalResult(target_stage=target_stage)

    for index, (order_id, order_number) in enumerate(candidates):
        if should_continue is not None and not should_continue():
            result.skipped.extend(
                {"order_id": oid, "order_number": number}
                for oid, number in candidates[index:]
            )
            current_app.logger.info(
                "Bulk approval for agent %s cancelled; %s order(s) skipped",
                agent_id, len(result.skipped),
            )
            break

        try:
            approve(order_id, actor_id)
        except OrderCoreError as exc:
            result.failed.append({
                "order_id": order_id,
                "order_number": order_number,
                "error": exc.message,
                "code": exc.code,
                "retryable": exc.retryable,
                "details": exc.details,
            })
            current_app.logger.warning(
                "Bulk approval of order %s failed: %s", order_number, exc.message
            )
        except Exception as exc:
            current_app.logger.exception("Bulk approval of order %s failed", order_number)
            result.failed.append({
                "order_id": order_id,
                "order_number": order_number,
                "error": str(exc),
                "code": "INTERNAL_ERROR",
                "retryable": False,
                "details": {},
            })
        else:
            result.succeeded.append({"order_id": order_id, "order_number": order_number})

    current_app.logger.info(
        "Bulk approval for agent %s to %s: %s succeeded, %s failed",
        agent_id, target_stage, result.succeeded_count, result.failed_count,
    )
    return result
