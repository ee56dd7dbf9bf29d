"""Exception types raised by jax_dynamics.

Configuration errors (bad topology, unsupported link connectivity, an
unimplemented collocation scheme, a name that does not exist) are fatal and
surface at assembly time. Solver failure is reported separately so callers
never mistake non-convergence for a modelling defect.
"""


class ConfigurationError(ValueError):
    """The robot description or the requested constraint assembly is invalid."""


class UnknownNameError(ConfigurationError):
    """A link, joint or variable lookup missed."""

    def __init__(self, kind: str, name, detail: str = ""):
        self.kind = kind
        self.name = name
        message = f"{kind} '{name}' not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class OptimizationError(RuntimeError):
    """The nonlinear solver failed to converge."""
