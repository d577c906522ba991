"""
Automation runner: drives one event through every matching automation.

For each event the runner loads the guild's enabled automations for the event
type, drops the ones whose filters reject the event, runs each remaining
automation's actions in declared order and writes one execution log per
automation. Automations are handled one after another, and so are the actions
inside an automation.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Protocol

from spacebot.automation.actions import ActionExecutor
from spacebot.automation.context import build_context
from spacebot.automation.filters import matches_filters
from spacebot.datatypes.automation_datatypes import (
    Automation,
    AutomationEvent,
    ExecutionLog,
    FilterContext,
    ProcessResult,
)
from spacebot.util.logger import get_logger

logger = get_logger("automation_runner")

EventHandler = Callable[..., Awaitable[ProcessResult]]


class AutomationRepository(Protocol):
    """Persistence operations the runner depends on."""

    async def get_triggered_automations(self, guild_id: str, event_type: str) -> List[Automation]: ...

    async def log_execution(self, log: ExecutionLog) -> None: ...


class AutomationRunner:
    """
    Processes events against stored automations.

    Args:
        store: Source of automations and sink for execution logs.
        executor: Runs individual actions.
        ignore_bot_events: Skip events flagged ``details.isBot`` before any lookup.
    """

    def __init__(
        self,
        store: AutomationRepository,
        executor: ActionExecutor,
        *,
        ignore_bot_events: bool = True,
    ):
        self.store = store
        self.executor = executor
        self.ignore_bot_events = ignore_bot_events

    async def process_event(
        self,
        event: AutomationEvent | Mapping[str, Any],
        guild_info: Mapping[str, Any] | None = None,
        filter_context: FilterContext | None = None,
    ) -> ProcessResult:
        """
        Run every matching automation for one event.

        Args:
            event: Normalized event, or its flat dict form.
            guild_info: Guild metadata for templates (``{"name": ...}``).
            filter_context: Role lists and account age used by filters.

        Returns:
            ProcessResult: ``executed`` counts automations whose actions all
            succeeded, ``errors`` those with at least one failed action. A
            failure while loading or filtering automations stops the event
            and counts as a single error.
        """
        if not isinstance(event, AutomationEvent):
            event = AutomationEvent.from_dict(event)

        result = ProcessResult()
        if self.ignore_bot_events and event.is_bot:
            logger.debug("[AUTOMATION] Ignoring bot event %s in guild %s", event.event_type, event.guild_id)
            return result

        started = time.monotonic()
        try:
            automations = await self.store.get_triggered_automations(event.guild_id, event.event_type)
            if not automations:
                return result

            logger.info(
                "[AUTOMATION] Found %d automations for %s in guild %s",
                len(automations), event.event_type, event.guild_id,
            )

            for automation in automations:
                if not matches_filters(event, automation.trigger_filters, filter_context):
                    logger.debug("[AUTOMATION] %s - filters not matched, skipping", automation.name)
                    continue

                if await self._run_automation(automation, event, guild_info):
                    result.executed += 1
                else:
                    result.errors += 1
        except Exception as exc:
            logger.error("[AUTOMATION] Processing error for %s in guild %s: %s",
                         event.event_type, event.guild_id, exc, exc_info=True)
            result.errors += 1

        if result.executed or result.errors:
            logger.info(
                "[AUTOMATION] Processed %d automations with %d errors in %dms",
                result.executed, result.errors, int((time.monotonic() - started) * 1000),
            )
        return result

    async def _run_automation(
        self,
        automation: Automation,
        event: AutomationEvent,
        guild_info: Mapping[str, Any] | None,
    ) -> bool:
        """Execute one automation's actions and persist its log; returns overall success."""
        started = time.monotonic()
        context = build_context(event, guild_info)

        action_results: List[Dict[str, Any]] = []
        all_success = True
        first_error: str | None = None
        total = len(automation.actions)

        for index, action in enumerate(automation.actions):
            outcome = await self.executor.execute(action.type, action.config, event, context, automation)
            action_results.append({"actionIndex": index, "actionType": action.type, **outcome.to_dict()})

            if outcome.success:
                logger.debug("[AUTOMATION] %s - action %d/%d (%s) succeeded",
                             automation.name, index + 1, total, action.type)
                continue

            all_success = False
            if first_error is None:
                first_error = outcome.error
            logger.warning("[AUTOMATION] %s - action %d/%d (%s) failed: %s",
                           automation.name, index + 1, total, action.type, outcome.error)

        log = ExecutionLog(
            automation_id=automation.id,
            guild_id=event.guild_id,
            trigger_event=event.event_type,
            trigger_data=event.to_dict(),
            action_result=action_results,
            success=all_success,
            error_message=first_error,
            execution_time_ms=int((time.monotonic() - started) * 1000),
        )
        try:
            await self.store.log_execution(log)
        except Exception as exc:
            logger.error("[AUTOMATION] Failed to write execution log for %s: %s", automation.name, exc)

        if all_success:
            logger.info("[AUTOMATION] %s - all %d action(s) executed successfully", automation.name, total)
        else:
            logger.warning("[AUTOMATION] %s - completed with errors", automation.name)
        return all_success


def create_automation_engine(store: AutomationRepository, executor: ActionExecutor, **kwargs: Any) -> EventHandler:
    """Build an event handler coroutine bound to ``store`` and ``executor``."""
    runner = AutomationRunner(store, executor, **kwargs)

    async def handle_event(
        event: AutomationEvent | Mapping[str, Any],
        guild_info: Mapping[str, Any] | None = None,
        filter_context: FilterContext | None = None,
    ) -> ProcessResult:
        return await runner.process_event(event, guild_info, filter_context)

    return handle_event
