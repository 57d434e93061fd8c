"""Investigation engine: drives an agent against a tool registry.

The engine executes the agent decision loop one step at a time. It owns no
decision logic of its own: the agent decides, the tool registry executes,
and the engine folds the outcome into a new immutable Run while emitting
audit events in the order the state transitions happen.
"""

from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import structlog

from oncall_gym.audit.event import AuditEvent, EventType
from oncall_gym.config import Settings, get_settings
from oncall_gym.exceptions import AgentContractError, WorkflowError
from oncall_gym.models.hypothesis import Hypothesis, HypothesisStatus
from oncall_gym.models.incident import Incident
from oncall_gym.models.observation import Observation
from oncall_gym.models.outputs import (
    CallToolDecision,
    EscalateDecision,
    HypothesisUpdate,
    ProposeMitigationDecision,
    parse_analysis,
    parse_decision,
)
from oncall_gym.tools.result import ToolResult
from oncall_gym.workflows.run import ResolutionType, Run, RunStatus
from oncall_gym.workflows.step import Step, StepStatus


logger = structlog.get_logger()


class Agent(Protocol):
    """Decision-making collaborator driving the investigation."""

    def decide_next_action(
        self,
        *,
        incident: Incident,
        observations: List[Observation],
        current_hypothesis: Optional[Hypothesis],
        step_number: int,
    ) -> Any:
        ...

    def analyze_result(
        self,
        *,
        tool_result: ToolResult,
        incident: Incident,
        current_hypothesis: Optional[Hypothesis],
    ) -> Any:
        ...


class ToolCaller(Protocol):
    """Anything that resolves a tool name and runs it."""

    def call(self, tool_name: str, params: Dict[str, Any]) -> ToolResult:
        ...


EventHandler = Callable[[AuditEvent], Any]


def _snapshot(hypothesis: Optional[Hypothesis]) -> Optional[Dict[str, Any]]:
    return hypothesis.to_dict() if hypothesis else None


class Engine:
    """
    Orchestrates investigation runs.

    Features:
    - One step per ``execute_step`` call for debuggability and control
    - Step limit as the safety net that guarantees termination
    - Audit events for every state transition
    - Agent and tool registry injected, so scripted fakes work in tests

    Errors raised by the agent or the tool registry are not caught: they
    propagate to the caller, whose last returned Run is left untouched.
    """

    def __init__(
        self,
        agent: Agent,
        tool_registry: ToolCaller,
        event_handler: Optional[EventHandler] = None,
        settings: Optional[Settings] = None,
    ):
        self.agent = agent
        self.tool_registry = tool_registry
        self.event_handler = event_handler
        self._settings = settings or get_settings()

    # -- public API ----------------------------------------------------------

    def start_run(self, incident: Incident, max_steps: Optional[int] = None) -> Run:
        """Create a run for an incident without executing any step."""
        if max_steps is None:
            max_steps = self._settings.engine.default_max_steps

        run = Run(incident=incident, max_steps=max_steps)

        logger.info(
            "Run started",
            run_id=run.id,
            incident_id=incident.id,
            service=incident.service,
            max_steps=max_steps,
        )
        self._emit(AuditEvent.run_started(
            run_id=run.id,
            incident_id=incident.id,
            incident_description=incident.description,
            max_steps=max_steps,
        ))
        return run

    def execute_step(self, run: Run) -> Run:
        """
        Execute one decision cycle and return the updated run.

        1. Check the run can continue
        2. Ask the agent for a decision
        3. Call a tool, propose a mitigation, or escalate
        4. Record the step

        Args:
            run: The latest run value. It must not be used after this call.

        Returns:
            A new Run including the executed step.

        Raises:
            WorkflowError: The run is terminal, paused, or out of steps.
            AgentContractError: The agent returned an unknown action.
        """
        if not run.can_continue:
            raise WorkflowError(
                f"Run {run.id} cannot continue "
                f"(status={run.status.value}, steps={run.step_count}/{run.max_steps})"
            )

        step_number = run.step_count + 1
        step = Step(
            run_id=run.id,
            step_number=step_number,
            decision="",
            status=StepStatus.EXECUTING,
        )
        self._emit(AuditEvent(
            type=EventType.STEP_STARTED,
            run_id=run.id,
            step_id=step.id,
            data={"step_number": step_number},
        ))

        decision = parse_decision(self.agent.decide_next_action(
            incident=run.incident,
            observations=list(run.observations),
            current_hypothesis=run.current_hypothesis,
            step_number=step_number,
        ))
        self._emit(AuditEvent(
            type=EventType.DECISION_MADE,
            run_id=run.id,
            step_id=step.id,
            data=decision.model_dump(),
        ))

        if isinstance(decision, CallToolDecision):
            run, step = self._call_tool(run, step, decision)
        elif isinstance(decision, ProposeMitigationDecision):
            run, step = self._propose_mitigation(run, step, decision)
        elif isinstance(decision, EscalateDecision):
            run, step = self._escalate(run, step, decision)
        else:
            raise AgentContractError(f"unhandled agent decision: {decision!r}")

        self._emit(AuditEvent(
            type=EventType.STEP_COMPLETED,
            run_id=run.id,
            step_id=step.id,
            data={
                "step_number": step.step_number,
                "status": step.status.value,
                "action": decision.action,
                "duration_ms": step.duration_ms,
            },
        ))

        logger.info(
            "Step executed",
            run_id=run.id,
            step_number=step.step_number,
            action=decision.action,
            step_status=step.status.value,
            run_status=run.status.value,
        )
        return run

    def run_to_completion(self, run: Run) -> Run:
        """Execute steps until the run is terminal, paused, or out of steps."""
        while run.can_continue:
            run = self.execute_step(run)

        if not run.is_terminal and run.step_limit_reached:
            reason = f"Step limit of {run.max_steps} reached without a resolution"
            run = run.with_status(RunStatus.FAILED).attach_resolution({
                "type": ResolutionType.STEP_LIMIT_REACHED,
                "reason": reason,
                "max_steps": run.max_steps,
            })
            logger.warning(
                "Run failed",
                run_id=run.id,
                reason=reason,
                step_count=run.step_count,
            )
            self._emit(AuditEvent(
                type=EventType.RUN_FAILED,
                run_id=run.id,
                data={
                    "reason": reason,
                    "resolution_type": ResolutionType.STEP_LIMIT_REACHED.value,
                    "step_count": run.step_count,
                },
            ))

        return run

    # -- decision handlers ---------------------------------------------------

    def _call_tool(
        self,
        run: Run,
        step: Step,
        decision: CallToolDecision,
    ) -> Tuple[Run, Step]:
        params = dict(decision.tool_params)
        step = step.with_decision(decision.reasoning).with_tool_call(decision.tool_name, params)

        self._emit(AuditEvent.tool_called(
            run_id=run.id,
            step_id=step.id,
            tool_name=decision.tool_name,
            params=params,
        ))

        result = self.tool_registry.call(decision.tool_name, params)

        self._emit(AuditEvent.tool_result_received(
            run_id=run.id,
            step_id=step.id,
            tool_name=decision.tool_name,
            success=result.success,
            execution_time_ms=result.execution_time_ms,
            errors=result.errors,
        ))
        if not result.success:
            logger.warning(
                "Tool reported failure",
                run_id=run.id,
                tool_name=decision.tool_name,
                errors=list(result.errors),
            )

        hypothesis_before = run.current_hypothesis
        analysis = parse_analysis(self.agent.analyze_result(
            tool_result=result,
            incident=run.incident,
            current_hypothesis=hypothesis_before,
        ))

        observation = Observation(
            tool_name=decision.tool_name,
            summary=analysis.observation,
            significant=analysis.significant,
            raw_data=result.data,
            tool_params=params,
        )
        run = run.add_observation(observation)
        self._emit(AuditEvent.observation_recorded(
            run_id=run.id,
            step_id=step.id,
            observation_id=observation.id,
            summary=observation.summary,
            significant=observation.significant,
        ))

        if analysis.hypothesis_update is not None:
            hypothesis = self._revise_hypothesis(
                hypothesis_before, analysis.hypothesis_update, observation
            )
            run = run.with_hypothesis(hypothesis)
            self._emit_hypothesis(run, step, hypothesis, hypothesis_before)

        step = (
            step.with_tool_result(
                success=result.success,
                data=result.data,
                errors=result.errors,
                execution_time_ms=result.execution_time_ms,
            )
            .with_observation(analysis.observation)
            .with_hypotheses(_snapshot(hypothesis_before), _snapshot(run.current_hypothesis))
            .with_status(StepStatus.COMPLETED if result.success else StepStatus.FAILED)
        )
        return run.add_step(step), step

    def _propose_mitigation(
        self,
        run: Run,
        step: Step,
        decision: ProposeMitigationDecision,
    ) -> Tuple[Run, Step]:
        hypothesis_before = run.current_hypothesis
        if hypothesis_before is not None:
            hypothesis = (
                hypothesis_before
                .with_mitigation(decision.mitigation)
                .with_status(HypothesisStatus.ACTIONABLE)
            )
            run = run.with_hypothesis(hypothesis)
            self._emit_hypothesis(run, step, hypothesis, hypothesis_before)

        step = (
            step.with_decision(decision.reasoning or decision.mitigation)
            .with_hypotheses(_snapshot(hypothesis_before), _snapshot(run.current_hypothesis))
            .with_status(StepStatus.COMPLETED)
        )
        run = run.add_step(step).with_resolution({
            "type": ResolutionType.MITIGATION_PROPOSED,
            "description": decision.mitigation,
            "confidence": decision.confidence,
        })

        logger.info(
            "Mitigation proposed",
            run_id=run.id,
            mitigation=decision.mitigation,
            confidence=decision.confidence,
        )
        self._emit(AuditEvent(
            type=EventType.RUN_COMPLETED,
            run_id=run.id,
            step_id=step.id,
            data={
                "resolution_type": ResolutionType.MITIGATION_PROPOSED.value,
                "description": decision.mitigation,
                "confidence": decision.confidence,
                "step_count": run.step_count,
                "duration_seconds": run.duration_seconds,
            },
        ))
        return run, step

    def _escalate(
        self,
        run: Run,
        step: Step,
        decision: EscalateDecision,
    ) -> Tuple[Run, Step]:
        step = step.with_decision(decision.reason).with_status(StepStatus.COMPLETED)
        run = run.add_step(step).with_status(RunStatus.ESCALATED).attach_resolution({
            "type": ResolutionType.ESCALATED,
            "reason": decision.reason,
            "escalation_target": decision.escalation_target,
        })

        logger.info(
            "Run escalated",
            run_id=run.id,
            escalation_target=decision.escalation_target,
            reason=decision.reason,
        )
        self._emit(AuditEvent(
            type=EventType.RUN_ESCALATED,
            run_id=run.id,
            step_id=step.id,
            data={
                "reason": decision.reason,
                "escalation_target": decision.escalation_target,
                "step_count": run.step_count,
            },
        ))
        return run, step

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _revise_hypothesis(
        current: Optional[Hypothesis],
        update: HypothesisUpdate,
        observation: Observation,
    ) -> Hypothesis:
        """Create a hypothesis or revise the existing one, keeping its id."""
        if current is None:
            return Hypothesis(
                description=update.description,
                confidence=update.confidence,
                supporting_observation_ids=(observation.id,),
            )

        return (
            current
            .with_description(update.description)
            .with_confidence(update.confidence)
            .with_observation(observation.id)
        )

    def _emit_hypothesis(
        self,
        run: Run,
        step: Step,
        hypothesis: Hypothesis,
        previous: Optional[Hypothesis],
    ):
        data = hypothesis.to_dict()
        data["previous_confidence"] = previous.confidence if previous else None
        self._emit(AuditEvent(
            type=EventType.HYPOTHESIS_UPDATED if previous else EventType.HYPOTHESIS_CREATED,
            run_id=run.id,
            step_id=step.id,
            data=data,
        ))

    def _emit(self, event: AuditEvent):
        logger.debug(
            "Emitting audit event",
            event_type=event.type.value,
            run_id=event.run_id,
            step_id=event.step_id,
        )
        if self.event_handler is not None:
            self.event_handler(event)
