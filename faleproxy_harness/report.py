"""
Typed results for harness runs

Cleanup steps and contract checks are recorded as values instead of being
raised or discarded, and can be saved as a JSON report.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import TeardownWarning


@dataclass
class CleanupResult:
    """Outcome of one teardown step"""
    step: str
    status: str  # "ok", "failed", "skipped"
    duration: float = 0.0
    detail: str = ""
    warning: Optional[TeardownWarning] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "status": self.status,
            "duration": self.duration,
            "detail": self.detail,
            "error_message": str(self.warning) if self.warning else None,
        }


@dataclass
class TeardownReport:
    """All teardown steps of one run, in execution order"""
    results: List[CleanupResult] = field(default_factory=list)

    @property
    def failed(self) -> List[CleanupResult]:
        return [result for result in self.results if result.status == "failed"]

    @property
    def warnings(self) -> List[TeardownWarning]:
        return [result.warning for result in self.failed if result.warning is not None]

    @property
    def clean(self) -> bool:
        return not self.failed

    def get(self, step: str) -> Optional[CleanupResult]:
        for result in self.results:
            if result.step == step:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"clean": self.clean, "results": [result.to_dict() for result in self.results]}


@dataclass
class CheckResult:
    """Outcome of one contract check"""
    name: str
    status: str  # "passed", "failed"
    duration: float = 0.0
    error_message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SuiteReport:
    """Contract checks plus teardown of one smoke run"""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    environment: Dict[str, str] = field(default_factory=dict)
    checks: List[CheckResult] = field(default_factory=list)
    teardown: Optional[TeardownReport] = None
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time if self.end_time > 0 else 0.0

    @property
    def passed_checks(self) -> int:
        return sum(1 for check in self.checks if check.status == "passed")

    @property
    def failed_checks(self) -> int:
        return sum(1 for check in self.checks if check.status == "failed")

    @property
    def success(self) -> bool:
        return bool(self.checks) and self.failed_checks == 0

    def finalize(self):
        self.end_time = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "environment": self.environment,
            "duration": self.duration,
            "passed": self.passed_checks,
            "failed": self.failed_checks,
            "checks": [
                {
                    "name": check.name,
                    "status": check.status,
                    "duration": check.duration,
                    "error_message": check.error_message,
                    "details": check.details,
                }
                for check in self.checks
            ],
            "teardown": self.teardown.to_dict() if self.teardown else None,
        }

    def save_json(self, output_dir: Path, filename: str = "harness_report.json") -> Path:
        """Save report as JSON"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        json_path = output_dir / filename

        with open(json_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

        return json_path
