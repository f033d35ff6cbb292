"""
Action Orchestrator — turns a committed decision into an executable plan
and runs it against an Executor.

Plan synthesis:
  INTENTS → STEPS → ROLLBACK PLAN (reverse order) → VERIFICATION CHECKS

Behavioral Contract:
- Every decision yields at least one auditable step.
- Steps run strictly in order. Every executor call is awaited before the
  next step starts.
- Executor failures become data (StepResult + ActionError). execute() never
  raises to its caller.
- The per-step FailurePolicy decides what happens after a failure:
  CONTINUE runs the next step, HALT stops, ROLLBACK unwinds every
  previously-succeeded rollback-eligible step LIFO and then stops.
- Rollback is best-effort. A rollback that raises is logged and reported in
  ActionResult.rollback_failures; the affected step may still be applied.
"""

import inspect
import logging
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

from cognition_kernel.action.executors import Executor
from cognition_kernel.models.action import (
    ActionError,
    ActionIntent,
    ActionPlan,
    ActionResult,
    ActionStep,
    ActionType,
    FailurePolicy,
    RollbackFailure,
    RollbackStep,
    StepResult,
    VerificationCheck,
)
from cognition_kernel.models.decision import DecisionRecord

logger = logging.getLogger(__name__)

BASE_TIMEOUT_MS = 30_000
PER_STEP_TIMEOUT_MS = 10_000

ROLLBACK_ACTIONS: Dict[ActionType, str] = {
    ActionType.DATABASE_WRITE: "restore_previous_state",
    ActionType.API_CALL: "send_cancellation",
    ActionType.CALENDAR: "delete_event",
    ActionType.PAYMENT: "issue_refund",
    ActionType.CONTENT_CREATION: "delete_content",
    ActionType.AGENT_SPAWN: "terminate_agent",
    ActionType.NOTIFICATION: "no_rollback",
    ActionType.EMAIL: "no_rollback",
    ActionType.SMS: "no_rollback",
}


def is_rollback_eligible(action_type: ActionType) -> bool:
    return ROLLBACK_ACTIONS[action_type] != "no_rollback"


class IntentClassifier(Protocol):
    """Maps a free-text action to canonical intents, in execution order."""

    def classify(self, action: str) -> List[ActionIntent]: ...


class KeywordIntentClassifier:
    """
    Substring fallback for actions that arrive without upstream intents.
    Matching is case-insensitive; intents come out in a fixed order.
    """

    KEYWORDS: List[Tuple[ActionIntent, Tuple[str, ...]]] = [
        (ActionIntent.SEND_EMAIL, ("email", "send")),
        (ActionIntent.WRITE_RECORD, ("update", "save")),
        (ActionIntent.NOTIFY, ("notify", "alert")),
    ]

    def classify(self, action: str) -> List[ActionIntent]:
        lowered = action.lower()
        return [
            intent for intent, keywords in self.KEYWORDS
            if any(k in lowered for k in keywords)
        ]


# Intent -> (type, tool, parameters, expected_result)
_STEP_TEMPLATES: Dict[ActionIntent, Tuple[ActionType, str, dict, str]] = {
    ActionIntent.SEND_EMAIL: (
        ActionType.EMAIL, "email_sender",
        {"template": "default", "target": "lead"}, "Email sent successfully",
    ),
    ActionIntent.WRITE_RECORD: (
        ActionType.DATABASE_WRITE, "database",
        {"operation": "update"}, "Record updated",
    ),
    ActionIntent.NOTIFY: (
        ActionType.NOTIFICATION, "notification_service",
        {"channel": "in_app"}, "Notification delivered",
    ),
    ActionIntent.LOG: (
        ActionType.DATABASE_WRITE, "database",
        {"operation": "log"}, "Action logged",
    ),
}


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _verify(check: Optional[VerificationCheck], result: Any) -> bool:
    if check is None:
        return True
    return result is not None


class ActionOrchestrator:
    """Plans and executes the selected option of a decision."""

    def __init__(
        self,
        classifier: Optional[IntentClassifier] = None,
        base_timeout_ms: int = BASE_TIMEOUT_MS,
        per_step_timeout_ms: int = PER_STEP_TIMEOUT_MS,
    ):
        self.classifier = classifier or KeywordIntentClassifier()
        self.base_timeout_ms = base_timeout_ms
        self.per_step_timeout_ms = per_step_timeout_ms

    # --- Planning ---

    def classify_intents(self, decision: DecisionRecord) -> List[ActionIntent]:
        """Upstream intents win; the classifier is the fallback."""
        option = decision.selected_option
        intents = option.intents if option.intents else self.classifier.classify(option.action)

        ordered: List[ActionIntent] = []
        for intent in intents:
            if intent not in ordered:
                ordered.append(intent)
        return ordered or [ActionIntent.LOG]

    def generate_steps(self, decision: DecisionRecord) -> List[ActionStep]:
        steps = []
        for intent in self.classify_intents(decision):
            action_type, tool, parameters, expected = _STEP_TEMPLATES[intent]
            parameters = dict(parameters)
            if intent == ActionIntent.LOG:
                parameters["data"] = {"action": decision.selected_option.action}
            steps.append(ActionStep(
                order=len(steps) + 1,
                type=action_type,
                tool=tool,
                parameters=parameters,
                expected_result=expected,
            ))
        return steps

    def generate_rollback_plan(self, steps: List[ActionStep]) -> List[RollbackStep]:
        """Rollback steps for eligible types, in reverse execution order."""
        return [
            RollbackStep(
                action_step_id=step.id,
                action_type=step.type,
                rollback_action=ROLLBACK_ACTIONS[step.type],
                parameters={"original_step": step.id},
            )
            for step in reversed(steps)
            if is_rollback_eligible(step.type)
        ]

    def generate_verification_checks(self, steps: List[ActionStep]) -> List[VerificationCheck]:
        return [
            VerificationCheck(
                after_step=step.id,
                condition=f"step_{step.order}_completed",
                expected_value=True,
                on_failure=(
                    FailurePolicy.ROLLBACK
                    if step.type == ActionType.PAYMENT
                    else FailurePolicy.CONTINUE
                ),
            )
            for step in steps
        ]

    def calculate_timeout(self, steps: List[ActionStep]) -> int:
        return self.base_timeout_ms + len(steps) * self.per_step_timeout_ms

    def create_plan(self, decision: DecisionRecord) -> ActionPlan:
        steps = self.generate_steps(decision)
        return ActionPlan(
            decision_id=decision.id,
            steps=steps,
            rollback_plan=self.generate_rollback_plan(steps),
            verification_checks=self.generate_verification_checks(steps),
            timeout_ms=self.calculate_timeout(steps),
        )

    # --- Execution ---

    async def execute(self, plan: ActionPlan, executor: Executor) -> ActionResult:
        start_time = time.monotonic()
        checks = {c.after_step: c for c in plan.verification_checks}
        step_results: List[StepResult] = []
        errors: List[ActionError] = []
        rolled_back: List[str] = []
        rollback_failures: List[RollbackFailure] = []
        halted = False

        for step in plan.steps:
            check = checks.get(step.id)
            step_start = time.monotonic()
            try:
                result = await _resolve(executor.execute(step))
            except Exception as e:
                step_results.append(StepResult(
                    step_id=step.id,
                    success=False,
                    result=None,
                    duration_ms=(time.monotonic() - step_start) * 1000,
                    verification_passed=False,
                ))
                policy = check.on_failure if check else FailurePolicy.CONTINUE
                logger.warning(
                    "Step failed",
                    extra={
                        "plan_id": plan.id,
                        "step_id": step.id,
                        "step_type": step.type.value,
                        "policy": policy.value,
                        "error": str(e),
                    },
                )

                if policy == FailurePolicy.ROLLBACK:
                    rolled_back, rollback_failures = await self._rollback(
                        plan, step_results, executor
                    )
                halted = policy != FailurePolicy.CONTINUE
                errors.append(ActionError(
                    step_id=step.id,
                    error=str(e) or type(e).__name__,
                    recoverable=is_rollback_eligible(step.type),
                    handled=policy == FailurePolicy.ROLLBACK and not rollback_failures,
                ))
                if halted:
                    break
                continue

            step_results.append(StepResult(
                step_id=step.id,
                success=True,
                result=result,
                duration_ms=(time.monotonic() - step_start) * 1000,
                verification_passed=_verify(check, result),
            ))

        elapsed_ms = (time.monotonic() - start_time) * 1000
        if elapsed_ms > plan.timeout_ms:
            logger.warning(
                "Plan exceeded its timeout budget",
                extra={"plan_id": plan.id, "elapsed_ms": elapsed_ms, "timeout_ms": plan.timeout_ms},
            )

        return ActionResult(
            action_plan_id=plan.id,
            step_results=step_results,
            errors=errors,
            rolled_back_step_ids=rolled_back,
            rollback_failures=rollback_failures,
            halted=halted,
            overall_success=len(errors) == 0,
            execution_time_ms=elapsed_ms,
        )

    async def _rollback(
        self,
        plan: ActionPlan,
        step_results: List[StepResult],
        executor: Executor,
    ) -> Tuple[List[str], List[RollbackFailure]]:
        """Unwind succeeded steps. rollback_plan is already in LIFO order."""
        succeeded = {r.step_id for r in step_results if r.success}
        rolled_back: List[str] = []
        failures: List[RollbackFailure] = []

        for rollback in plan.rollback_plan:
            if rollback.action_step_id not in succeeded:
                continue
            try:
                await _resolve(executor.rollback(rollback))
                rolled_back.append(rollback.action_step_id)
            except Exception as e:
                logger.exception(
                    "Rollback failed",
                    extra={"plan_id": plan.id, "step_id": rollback.action_step_id},
                )
                failures.append(RollbackFailure(
                    action_step_id=rollback.action_step_id,
                    rollback_action=rollback.rollback_action,
                    error=str(e) or type(e).__name__,
                ))

        return rolled_back, failures
