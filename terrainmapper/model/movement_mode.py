"""MovementMode - which vertical constraints apply to a mover.

The flags are not exclusive. A mover that can both fly and burrow, or that
does none of the three, ignores terrain entirely.
"""

from dataclasses import dataclass

from terrainmapper.constants import MovementConfig


@dataclass(frozen=True)
class MovementMode:
    """Vertical movement capabilities for one path query.

    Example:
        mode = MovementMode.from_action("fly")
        mode.flying  # True
    """

    walking: bool = True
    flying: bool = False
    burrowing: bool = False

    @classmethod
    def from_action(cls, action: str = MovementConfig.DEFAULT_ACTION) -> "MovementMode":
        """Default derivation from a movement action name.

        Unknown actions (teleport-like moves) yield an unconstrained mode.
        """
        action = action.lower()
        return cls(
            walking=action in MovementConfig.WALK_ACTIONS,
            flying=action in MovementConfig.FLY_ACTIONS,
            burrowing=action in MovementConfig.BURROW_ACTIONS,
        )

    @property
    def is_unconstrained(self) -> bool:
        return (self.flying and self.burrowing) or not (self.walking or self.flying or self.burrowing)

    def __str__(self) -> str:
        names = [n for n in ("walking", "flying", "burrowing") if getattr(self, n)]
        return "+".join(names) or "unconstrained"
