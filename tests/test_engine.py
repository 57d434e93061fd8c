"""Tests for the investigation Engine."""

import pytest

from fakes import FakeToolRegistry, ScriptedAgent, call_tool, escalate, propose
from oncall_gym.audit.event import EventType
from oncall_gym.exceptions import AgentContractError, WorkflowError
from oncall_gym.models.hypothesis import HypothesisStatus
from oncall_gym.tools.result import ToolResult
from oncall_gym.workflows.engine import Engine
from oncall_gym.workflows.run import ResolutionType, RunStatus
from oncall_gym.workflows.step import StepStatus


DEPLOY_ANALYSIS = {
    "observation": "Deploy v2.3.1 at 10:00",
    "significant": True,
    "hypothesis_update": {"description": "Recent deploy caused latency", "confidence": 0.6},
}


class TestEngine:
    """Test cases for Engine."""

    @pytest.fixture
    def events(self):
        return []

    @pytest.fixture
    def registry(self):
        return FakeToolRegistry()

    def make_engine(self, agent, registry, events, settings):
        return Engine(agent=agent, tool_registry=registry, event_handler=events.append, settings=settings)

    def test_start_run(self, incident, registry, events, settings):
        """Test start_run creates a started run and emits run_started."""
        engine = self.make_engine(ScriptedAgent([call_tool()]), registry, events, settings)

        run = engine.start_run(incident, max_steps=5)

        assert run.status == RunStatus.STARTED
        assert run.max_steps == 5
        assert run.step_count == 0
        assert [e.type for e in events] == [EventType.RUN_STARTED]
        assert events[0].data["incident_id"] == incident.id

    def test_start_run_uses_configured_default(self, incident, registry, events, settings):
        """Test max_steps falls back to the engine configuration."""
        settings.engine.default_max_steps = 7
        engine = self.make_engine(ScriptedAgent([call_tool()]), registry, events, settings)

        assert engine.start_run(incident).max_steps == 7

    def test_execute_tool_step(self, incident, registry, events, settings):
        """Test a call_tool decision runs the tool and records the observation."""
        agent = ScriptedAgent([call_tool("deploys", service="checkout")], analysis=DEPLOY_ANALYSIS)
        engine = self.make_engine(agent, registry, events, settings)
        run = engine.start_run(incident, max_steps=5)

        updated = engine.execute_step(run)

        assert registry.calls == [{"tool_name": "deploys", "params": {"service": "checkout"}}]
        assert updated.status == RunStatus.RUNNING
        assert updated.step_count == 1
        assert run.step_count == 0

        step = updated.last_step
        assert step.step_number == 1
        assert step.status == StepStatus.COMPLETED
        assert step.tool_call["tool_name"] == "deploys"
        assert step.tool_result["success"] is True
        assert step.observation == "Deploy v2.3.1 at 10:00"
        assert step.hypothesis_before is None
        assert step.hypothesis_after["description"] == "Recent deploy caused latency"

        observation = updated.observations[0]
        assert observation.significant
        assert observation.tool_params == {"service": "checkout"}
        assert updated.current_hypothesis.supporting_observation_ids == (observation.id,)

    def test_agent_receives_context(self, incident, registry, events, settings):
        """Test the agent sees the incident, evidence so far and step number."""
        agent = ScriptedAgent([call_tool()], analysis=DEPLOY_ANALYSIS)
        engine = self.make_engine(agent, registry, events, settings)
        run = engine.start_run(incident, max_steps=5)

        run = engine.execute_step(run)
        engine.execute_step(run)

        second = agent.decide_calls[1]
        assert second["step_number"] == 2
        assert second["incident"] is incident
        assert len(second["observations"]) == 1
        assert second["current_hypothesis"].confidence == 0.6
        assert agent.analyze_calls[0]["tool_result"].tool_name == "logs"

    def test_hypothesis_revised_in_place(self, incident, registry, events, settings):
        """Test a second update revises the same hypothesis."""
        agent = ScriptedAgent([call_tool()], analysis=DEPLOY_ANALYSIS)
        engine = self.make_engine(agent, registry, events, settings)
        run = engine.start_run(incident, max_steps=5)

        first = engine.execute_step(run)
        agent.analysis = {
            "observation": "Latency jumped at 10:00",
            "significant": True,
            "hypothesis_update": {"description": "Deploy caused regression", "confidence": 0.8},
        }
        second = engine.execute_step(first)

        assert second.current_hypothesis.id == first.current_hypothesis.id
        assert second.current_hypothesis.confidence == 0.8
        assert len(second.current_hypothesis.supporting_observation_ids) == 2
        types = [e.type for e in events]
        assert types.count(EventType.HYPOTHESIS_CREATED) == 1
        assert types.count(EventType.HYPOTHESIS_UPDATED) == 1

    def test_tool_failure_is_data(self, incident, events, settings):
        """Test a failed tool result fails the step but not the run."""
        registry = FakeToolRegistry(result=ToolResult.fail("metrics", ["metric 'x' not found"]))
        agent = ScriptedAgent([call_tool("metrics", service="checkout", metric_name="x")])
        engine = self.make_engine(agent, registry, events, settings)

        run = engine.execute_step(engine.start_run(incident, max_steps=5))

        assert run.status == RunStatus.RUNNING
        assert run.last_step.status == StepStatus.FAILED
        assert run.last_step.tool_result["errors"] == ["metric 'x' not found"]
        assert agent.analyze_calls[0]["tool_result"].success is False
        completed = [e for e in events if e.type == EventType.STEP_COMPLETED]
        assert len(completed) == 1
        assert completed[0].data["status"] == "failed"
        assert completed[0].step_id == run.last_step.id

    def test_propose_mitigation(self, incident, registry, events, settings):
        """Test a mitigation proposal completes the run."""
        agent = ScriptedAgent([call_tool(), propose("Roll back to v2.3.0", 0.9)], analysis=DEPLOY_ANALYSIS)
        engine = self.make_engine(agent, registry, events, settings)
        run = engine.execute_step(engine.start_run(incident, max_steps=5))

        final = engine.execute_step(run)

        assert final.status == RunStatus.COMPLETED
        assert final.resolution["type"] == ResolutionType.MITIGATION_PROPOSED
        assert final.resolution["description"] == "Roll back to v2.3.0"
        assert final.resolution["confidence"] == 0.9
        assert final.current_hypothesis.status == HypothesisStatus.ACTIONABLE
        assert final.current_hypothesis.proposed_mitigation == "Roll back to v2.3.0"
        assert final.last_step.status == StepStatus.COMPLETED
        assert final.completed_at is not None
        assert events[-2].type == EventType.RUN_COMPLETED
        assert events[-1].type == EventType.STEP_COMPLETED

    def test_completed_run_cannot_be_reopened(self, incident, registry, events, settings):
        """Test a finished run stays finished and takes no further steps."""
        engine = self.make_engine(ScriptedAgent([propose()]), registry, events, settings)
        final = engine.run_to_completion(engine.start_run(incident, max_steps=5))

        with pytest.raises(WorkflowError):
            final.with_status(RunStatus.RUNNING)
        with pytest.raises(WorkflowError):
            engine.execute_step(final)
        assert final.step_count == 1

    def test_escalate(self, incident, registry, events, settings):
        """Test escalating on the first decision."""
        engine = self.make_engine(ScriptedAgent([escalate("Need DBA", "dba-oncall")]), registry, events, settings)

        final = engine.run_to_completion(engine.start_run(incident, max_steps=5))

        assert final.status == RunStatus.ESCALATED
        assert final.resolution["type"] == ResolutionType.ESCALATED
        assert final.resolution["escalation_target"] == "dba-oncall"
        assert final.step_count == 1
        assert final.last_step.decision == "Need DBA"
        assert registry.calls == []
        assert EventType.RUN_ESCALATED in [e.type for e in events]

    def test_step_limit_reached(self, incident, registry, events, settings):
        """Test an agent that never concludes is stopped at max_steps."""
        engine = self.make_engine(ScriptedAgent([call_tool()]), registry, events, settings)

        final = engine.run_to_completion(engine.start_run(incident, max_steps=3))

        assert final.step_count == 3
        assert final.status == RunStatus.FAILED
        assert final.resolution["type"] == ResolutionType.STEP_LIMIT_REACHED
        assert final.resolution["max_steps"] == 3
        assert events[-1].type == EventType.RUN_FAILED

    def test_zero_step_budget(self, incident, registry, events, settings):
        """Test a run with max_steps=0 fails without asking the agent."""
        agent = ScriptedAgent([call_tool()])
        engine = self.make_engine(agent, registry, events, settings)

        final = engine.run_to_completion(engine.start_run(incident, max_steps=0))

        assert final.status == RunStatus.FAILED
        assert final.step_count == 0
        assert agent.decide_calls == []

    def test_mitigation_on_third_decision(self, incident, registry, events, settings):
        """Test the run ends with the exact mitigation the agent proposed."""
        agent = ScriptedAgent([call_tool(), call_tool("deploys"), propose("Roll back to v2.3.0")])
        engine = self.make_engine(agent, registry, events, settings)

        final = engine.run_to_completion(engine.start_run(incident, max_steps=10))

        assert final.step_count == 3
        assert final.status == RunStatus.COMPLETED
        assert final.resolution["type"] == ResolutionType.MITIGATION_PROPOSED
        assert final.resolution["description"] == "Roll back to v2.3.0"

    def test_step_count_monotonic(self, incident, registry, events, settings):
        """Test each step adds exactly one step record."""
        engine = self.make_engine(ScriptedAgent([call_tool()]), registry, events, settings)
        run = engine.start_run(incident, max_steps=4)

        counts = []
        while run.can_continue:
            run = engine.execute_step(run)
            counts.append(run.step_count)

        assert counts == [1, 2, 3, 4]
        assert [s.step_number for s in run.steps] == [1, 2, 3, 4]

    def test_execute_step_on_terminal_run_raises(self, incident, registry, events, settings):
        """Test terminal runs cannot be stepped and are left untouched."""
        engine = self.make_engine(ScriptedAgent([escalate()]), registry, events, settings)
        final = engine.run_to_completion(engine.start_run(incident))
        before = final.to_dict()

        with pytest.raises(WorkflowError):
            engine.execute_step(final)

        assert final.to_dict() == before

    def test_paused_run_cannot_step(self, incident, registry, events, settings):
        """Test paused runs must be resumed first."""
        engine = self.make_engine(ScriptedAgent([call_tool()]), registry, events, settings)
        paused = engine.execute_step(engine.start_run(incident)).pause()

        with pytest.raises(WorkflowError):
            engine.execute_step(paused)
        assert engine.run_to_completion(paused).status == RunStatus.PAUSED

        resumed = engine.execute_step(paused.resume())
        assert resumed.step_count == 2

    def test_unknown_action_raises(self, incident, registry, events, settings):
        """Test unknown agent actions are contract violations."""
        engine = self.make_engine(ScriptedAgent([{"action": "meditate"}]), registry, events, settings)

        with pytest.raises(AgentContractError):
            engine.execute_step(engine.start_run(incident))

    def test_collaborator_errors_propagate(self, incident, events, settings):
        """Test registry exceptions reach the caller and the run is untouched."""
        registry = FakeToolRegistry(error=RuntimeError("registry down"))
        engine = self.make_engine(ScriptedAgent([call_tool()]), registry, events, settings)
        run = engine.start_run(incident)

        with pytest.raises(RuntimeError, match="registry down"):
            engine.execute_step(run)

        assert run.step_count == 0
        assert run.status == RunStatus.STARTED

    def test_event_order_for_tool_step(self, incident, registry, events, settings):
        """Test audit events follow the causal order of a tool step."""
        agent = ScriptedAgent([call_tool()], analysis=DEPLOY_ANALYSIS)
        engine = self.make_engine(agent, registry, events, settings)

        engine.execute_step(engine.start_run(incident, max_steps=5))

        assert [e.type for e in events] == [
            EventType.RUN_STARTED,
            EventType.STEP_STARTED,
            EventType.DECISION_MADE,
            EventType.TOOL_CALLED,
            EventType.TOOL_RESULT_RECEIVED,
            EventType.OBSERVATION_RECORDED,
            EventType.HYPOTHESIS_CREATED,
            EventType.STEP_COMPLETED,
        ]
        step_ids = {e.step_id for e in events[1:]}
        assert len(step_ids) == 1

    def test_no_event_handler(self, incident, registry, settings):
        """Test the engine runs without an event handler."""
        engine = Engine(agent=ScriptedAgent([propose()]), tool_registry=registry, settings=settings)
        final = engine.run_to_completion(engine.start_run(incident))

        assert final.status == RunStatus.COMPLETED
