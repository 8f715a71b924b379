from dataclasses import dataclass
from typing import Optional

from fsindexd.core.settings import Settings, settings


@dataclass(frozen=True)
class BatchConfig:
    """
    Flush policy for the batch scheduler.

    batch_size:     an addition flush is forced once the queue holds more than this
    batch_interval: seconds after the last addition flush before a flush is due anyway
    drain_cap:      upper bound of records moved from the pending stage per drain call
    wake_timeout:   upper bound the worker sleeps between two wake checks
    """
    batch_size: int = 100
    batch_interval: float = 1.0
    drain_cap: int = 500
    wake_timeout: float = 1.0
    drain_on_shutdown: bool = False

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.drain_cap <= 0:
            raise ValueError(f"drain_cap must be positive, got {self.drain_cap}")
        if self.batch_interval <= 0:
            raise ValueError(f"batch_interval must be positive, got {self.batch_interval}")
        if self.wake_timeout <= 0:
            raise ValueError(f"wake_timeout must be positive, got {self.wake_timeout}")

    @classmethod
    def from_settings(cls, settings_obj: Optional[Settings] = None) -> "BatchConfig":
        s = settings_obj or settings
        return cls(
            batch_size=s.BATCH_SIZE,
            batch_interval=s.BATCH_INTERVAL_MS / 1000.0,
            drain_cap=s.DRAIN_CAP,
            wake_timeout=s.WAKE_TIMEOUT_MS / 1000.0,
            drain_on_shutdown=s.DRAIN_ON_SHUTDOWN,
        )
