from __future__ import annotations

import csv
from dataclasses import dataclass, field
from pathlib import Path

from dxl_sim.transport.messages import JointState

TELEMETRY_FIELDS = [
    "t",
    "name",
    "motor_id",
    "motor_temp",
    "current_pos",
    "goal_pos",
    "is_moving",
    "error",
    "velocity",
    "load",
    "joint_velocity",
]


@dataclass
class CsvLogger:
    """
    JointState テレメトリを CSV に書き出す（1 tick = 1 行）.
    - extra columns (sim time, joint velocity, ...) are passed as keyword args
    - flush_every: flush every N rows (0: only on close)
    """

    path: Path
    fieldnames: list[str] = field(default_factory=lambda: list(TELEMETRY_FIELDS))
    flush_every: int = 1

    _fp = None
    _writer: csv.DictWriter | None = None
    _n: int = 0

    @property
    def rows_written(self) -> int:
        return int(self._n)

    def open(self):
        self.path = Path(self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fp = self.path.open("w", newline="", encoding="utf-8")
        self._writer = csv.DictWriter(self._fp, fieldnames=list(self.fieldnames), extrasaction="ignore")
        self._writer.writeheader()
        self._fp.flush()

    def write(self, row: dict):
        if self._writer is None or self._fp is None:
            raise RuntimeError("CsvLogger is not open. Call open() first.")
        self._writer.writerow(row)
        self._n += 1
        if int(self.flush_every) > 0 and (self._n % int(self.flush_every) == 0):
            self._fp.flush()

    def write_joint_state(self, msg: JointState, **extra):
        row = msg.as_row()
        row.update(extra)
        self.write(row)

    def close(self):
        if self._fp is not None:
            try:
                self._fp.flush()
            finally:
                self._fp.close()
                self._fp = None
                self._writer = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
