"""Acceleration limiting for chassis-velocity requests."""

import math

from .config import MAX_ANG_ACCEL, MAX_TRANS_ACCEL, TICK_PERIOD
from .geometry import ChassisVelocity


class AccelerationLimiter:
    """Rate-limits chassis velocity between control ticks.

    Translation is limited as a vector: the change in (vx, vy) is clamped in
    magnitude, so direction changes are limited as strictly as speed changes.
    Rotation is clamped independently as a scalar.

    The limiter remembers its own output, not the request, so repeated large
    requests ramp at exactly the configured rate.

    Attributes:
        max_trans_accel: Translation acceleration bound (m/s²)
        max_ang_accel: Angular acceleration bound (rad/s²)
        period: Time between calls (s)
    """

    def __init__(
        self,
        max_trans_accel: float = MAX_TRANS_ACCEL,
        max_ang_accel: float = MAX_ANG_ACCEL,
        period: float = TICK_PERIOD,
    ):
        if max_trans_accel <= 0 or max_ang_accel <= 0 or period <= 0:
            raise ValueError("Limiter bounds and period must be positive")

        self.max_trans_accel = max_trans_accel
        self.max_ang_accel = max_ang_accel
        self.period = period
        self.last = ChassisVelocity()

    @property
    def max_trans_step(self) -> float:
        """Largest translation change per call (m/s)."""
        return self.max_trans_accel * self.period

    @property
    def max_ang_step(self) -> float:
        """Largest angular velocity change per call (rad/s)."""
        return self.max_ang_accel * self.period

    def calculate(self, request: ChassisVelocity) -> ChassisVelocity:
        """Limit a request against the previous output.

        Args:
            request: Requested chassis velocity

        Returns:
            Chassis velocity whose change from the previous output is within bounds
        """
        dvx = request.vx - self.last.vx
        dvy = request.vy - self.last.vy
        dv = math.hypot(dvx, dvy)

        max_step = self.max_trans_step
        if dv > max_step:
            scale = max_step / dv
            dvx *= scale
            dvy *= scale

        domega = request.omega - self.last.omega
        max_ang_step = self.max_ang_step
        domega = max(-max_ang_step, min(max_ang_step, domega))

        self.last = ChassisVelocity(
            self.last.vx + dvx,
            self.last.vy + dvy,
            self.last.omega + domega,
        )
        return self.last

    def reset(self, velocity: ChassisVelocity = ChassisVelocity()) -> None:
        """Forget history and continue from the given velocity."""
        self.last = velocity
