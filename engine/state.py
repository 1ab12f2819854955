from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class CycleStats:
    cycles: int = 0
    trades_avoided: int = 0
    orders_placed: int = 0
    order_failures: int = 0
    skipped_cycles: int = 0
    errors: int = 0

    def bump(self, **counts: int) -> CycleStats:
        for key, value in counts.items():
            if value < 0:
                raise ValueError(f"counter {key} cannot decrease")
        return replace(self, **{key: getattr(self, key) + value for key, value in counts.items()})
