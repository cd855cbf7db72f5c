"""Domain errors surfaced to the API layer."""


class DietPlanNotFoundError(LookupError):
    """The referenced diet plan does not exist or belongs to another user."""


class PlanPersistenceError(RuntimeError):
    """A generated plan could not be stored; nothing was written."""
