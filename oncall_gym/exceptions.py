"""Exception hierarchy for Oncall Gym."""


class OncallGymError(Exception):
    """Base class for all Oncall Gym errors."""


class ValidationError(OncallGymError):
    """A value failed validation at construction time."""


class ToolNotFoundError(OncallGymError):
    """The requested tool is not registered."""


class WorkflowError(OncallGymError):
    """A run or engine operation was used outside its contract."""


class AgentContractError(OncallGymError):
    """The agent returned a decision or analysis that does not match the schema."""


class ScenarioNotFoundError(OncallGymError):
    """No scenario file exists in the given directory."""


class FixtureNotFoundError(OncallGymError):
    """A fixture directory or file does not exist."""
