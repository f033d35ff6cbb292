"""
Executors — the side-effecting boundary of the Action Orchestrator.

The orchestrator only knows the Executor protocol. DispatchingExecutor is
the in-process implementation: it routes each step to a handler registered
for its ActionType. The default handlers are simulated; production wires
real email, database and payment integrations via register_handler().
"""

from typing import Any, Callable, Dict, List, Protocol, Tuple

from cognition_kernel.models.action import ActionStep, ActionType, RollbackStep


class ExecutionError(Exception):
    """Raised when a step or rollback cannot be executed."""
    pass


class Executor(Protocol):
    """
    Capability the orchestrator drives. Either method may be a plain
    function or a coroutine function; the orchestrator awaits both.
    """

    def execute(self, step: ActionStep) -> Any: ...

    def rollback(self, rollback: RollbackStep) -> Any: ...


StepHandler = Callable[[ActionStep], Any]
RollbackHandler = Callable[[RollbackStep], Any]


class DispatchingExecutor:
    """
    Dispatches steps to per-ActionType handlers and keeps a call log
    of everything executed and rolled back, in order. A handler that
    raises is logged as "failed" or "rollback_failed" instead.
    """

    def __init__(self, register_defaults: bool = True):
        self._handlers: Dict[ActionType, StepHandler] = {}
        self._rollback_handlers: Dict[ActionType, RollbackHandler] = {}
        self.calls: List[Tuple[str, str]] = []
        if register_defaults:
            self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        """Register simulated handlers for every action type."""
        self._handlers[ActionType.EMAIL] = self._simulate_email
        self._handlers[ActionType.SMS] = self._simulate_sms
        self._handlers[ActionType.NOTIFICATION] = self._simulate_notification
        self._handlers[ActionType.DATABASE_WRITE] = self._simulate_database_write
        self._handlers[ActionType.API_CALL] = self._simulate_api_call
        self._handlers[ActionType.CALENDAR] = self._simulate_calendar
        self._handlers[ActionType.PAYMENT] = self._simulate_payment
        self._handlers[ActionType.CONTENT_CREATION] = self._simulate_content_creation
        self._handlers[ActionType.AGENT_SPAWN] = self._simulate_agent_spawn
        for action_type in ActionType:
            self._rollback_handlers[action_type] = self._simulate_rollback

    def register_handler(self, action_type: ActionType, handler: StepHandler) -> None:
        """Register a custom handler for an action type."""
        self._handlers[action_type] = handler

    def register_rollback_handler(
        self, action_type: ActionType, handler: RollbackHandler
    ) -> None:
        self._rollback_handlers[action_type] = handler

    def execute(self, step: ActionStep) -> Any:
        handler = self._handlers.get(step.type)
        if handler is None:
            raise ExecutionError(
                f"No handler registered for action type: {step.type.value}"
            )
        try:
            result = handler(step)
        except Exception:
            self.calls.append(("failed", step.id))
            raise
        self.calls.append(("execute", step.id))
        return result

    def rollback(self, rollback: RollbackStep) -> Any:
        handler = self._rollback_handlers.get(rollback.action_type)
        if handler is None:
            raise ExecutionError(
                f"No rollback handler registered for action type: "
                f"{rollback.action_type.value}"
            )
        try:
            result = handler(rollback)
        except Exception:
            self.calls.append(("rollback_failed", rollback.action_step_id))
            raise
        self.calls.append(("rollback", rollback.action_step_id))
        return result

    # --- Simulated handlers ---

    def _simulate_email(self, step: ActionStep) -> dict:
        return {"status": "sent", "message_id": f"msg_{step.id}_email"}

    def _simulate_sms(self, step: ActionStep) -> dict:
        return {"status": "sent", "message_id": f"msg_{step.id}_sms"}

    def _simulate_notification(self, step: ActionStep) -> dict:
        return {
            "status": "delivered",
            "channel": step.parameters.get("channel", "in_app"),
        }

    def _simulate_database_write(self, step: ActionStep) -> dict:
        return {
            "status": "written",
            "operation": step.parameters.get("operation", "update"),
        }

    def _simulate_api_call(self, step: ActionStep) -> dict:
        return {"status": "ok", "request_id": f"req_{step.id}"}

    def _simulate_calendar(self, step: ActionStep) -> dict:
        return {"status": "scheduled", "event_id": f"evt_{step.id}"}

    def _simulate_payment(self, step: ActionStep) -> dict:
        return {"status": "captured", "transaction_id": f"txn_{step.id}"}

    def _simulate_content_creation(self, step: ActionStep) -> dict:
        return {"status": "created", "content_id": f"cnt_{step.id}"}

    def _simulate_agent_spawn(self, step: ActionStep) -> dict:
        return {"status": "spawned", "agent_id": f"agent_{step.id}"}

    def _simulate_rollback(self, rollback: RollbackStep) -> dict:
        return {"status": "rolled_back", "action": rollback.rollback_action}
