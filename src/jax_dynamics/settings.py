"""Optimizer and constraint settings."""

from flax import struct


@struct.dataclass
class OptimizerSetting:
    """Immutable settings shared by the graph builder and the optimizers.

    Sigmas are the standard deviations used to whiten each constraint family.
    Hard constraints (fixed-link pinning, collocation, priors) use the small
    ``prior_sigma`` / ``*_col_sigma`` values.

    Attributes:
        p_sigma: Pose closure.
        v_sigma: Twist closure.
        a_sigma: Twist-acceleration closure.
        f_sigma: Wrench balance and wrench equivalence.
        t_sigma: Torque extraction.
        cp_sigma: Contact kinematics (pose, twist, acceleration).
        cm_sigma: Contact moment.
        planar_sigma: Planar wrench.
        q_col_sigma: Angle/velocity collocation.
        v_col_sigma: Velocity/acceleration collocation.
        prior_sigma: Fixed-link pinning and dynamics priors.
        jl_sigma: Joint limits.
        max_link_connections: Largest wrench-balance arity accepted per link.
    """
    p_sigma: float = struct.field(pytree_node=False, default=1e-3)
    v_sigma: float = struct.field(pytree_node=False, default=1e-3)
    a_sigma: float = struct.field(pytree_node=False, default=1e-3)
    f_sigma: float = struct.field(pytree_node=False, default=1e-3)
    t_sigma: float = struct.field(pytree_node=False, default=1e-3)
    cp_sigma: float = struct.field(pytree_node=False, default=1e-3)
    cm_sigma: float = struct.field(pytree_node=False, default=1e-3)
    planar_sigma: float = struct.field(pytree_node=False, default=1e-3)
    q_col_sigma: float = struct.field(pytree_node=False, default=1e-4)
    v_col_sigma: float = struct.field(pytree_node=False, default=1e-4)
    prior_sigma: float = struct.field(pytree_node=False, default=1e-4)
    jl_sigma: float = struct.field(pytree_node=False, default=1e-2)
    max_link_connections: int = struct.field(pytree_node=False, default=8)

    # Levenberg-Marquardt / Gauss-Newton controls
    max_iterations: int = struct.field(pytree_node=False, default=100)
    relative_error_tol: float = struct.field(pytree_node=False, default=1e-8)
    absolute_error_tol: float = struct.field(pytree_node=False, default=1e-12)
    lambda_initial: float = struct.field(pytree_node=False, default=1e-5)
    lambda_factor: float = struct.field(pytree_node=False, default=10.0)
    lambda_upper_bound: float = struct.field(pytree_node=False, default=1e8)
    gradient_tol: float = struct.field(pytree_node=False, default=1e-6)

    @classmethod
    def uniform(cls, sigma: float, **kwargs) -> "OptimizerSetting":
        """Use the same sigma for every dynamics constraint family."""
        return cls(p_sigma=sigma, v_sigma=sigma, a_sigma=sigma, f_sigma=sigma,
                   t_sigma=sigma, cp_sigma=sigma, cm_sigma=sigma,
                   planar_sigma=sigma, **kwargs)
