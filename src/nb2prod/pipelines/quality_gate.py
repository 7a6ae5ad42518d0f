"""
Quality gate: the "stop the pipeline if the model is not good enough" step.

A gate is a list of thresholds on evaluation metrics. Missing or NaN metrics
fail their check, so a broken evaluation can never be promoted.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nb2prod.errors import QualityGateError
from nb2prod.settings import QualityGateSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateThreshold:
    metric: str
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def __post_init__(self):
        if self.minimum is None and self.maximum is None:
            raise ValueError(f"Threshold on '{self.metric}' needs a minimum or a maximum")
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError(f"Threshold on '{self.metric}' has minimum > maximum")


@dataclass
class GateCheck:
    threshold: GateThreshold
    value: Optional[float]
    passed: bool
    reason: str = ""

    def describe(self) -> str:
        t = self.threshold
        bounds = []
        if t.minimum is not None:
            bounds.append(f">= {t.minimum}")
        if t.maximum is not None:
            bounds.append(f"<= {t.maximum}")
        status = "ok" if self.passed else self.reason or "out of bounds"
        return f"{t.metric}={self.value} ({' and '.join(bounds)}): {status}"


@dataclass
class GateResult:
    checks: List[GateCheck] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def failed_checks(self) -> List[GateCheck]:
        return [c for c in self.checks if not c.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "checks": [
                {
                    "metric": c.threshold.metric,
                    "minimum": c.threshold.minimum,
                    "maximum": c.threshold.maximum,
                    "value": c.value,
                    "passed": c.passed,
                    "reason": c.reason,
                }
                for c in self.checks
            ],
        }


def _check(threshold: GateThreshold, metrics: Dict[str, Any]) -> GateCheck:
    if threshold.metric not in metrics:
        return GateCheck(threshold, None, False, "metric missing")

    raw = metrics[threshold.metric]
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return GateCheck(threshold, None, False, f"not a number: {raw!r}")
    if math.isnan(value):
        return GateCheck(threshold, value, False, "metric is NaN")

    if threshold.minimum is not None and value < threshold.minimum:
        return GateCheck(threshold, value, False, f"below minimum {threshold.minimum}")
    if threshold.maximum is not None and value > threshold.maximum:
        return GateCheck(threshold, value, False, f"above maximum {threshold.maximum}")
    return GateCheck(threshold, value, True)


def evaluate_gate(metrics: Dict[str, Any], thresholds: List[GateThreshold]) -> GateResult:
    result = GateResult([_check(t, metrics) for t in thresholds])
    for check in result.checks:
        log = logger.info if check.passed else logger.warning
        log(f"Gate check {check.describe()}")
    logger.info(f"Quality gate {'PASSED' if result.passed else 'FAILED'}")
    return result


def enforce_gate(metrics: Dict[str, Any], thresholds: List[GateThreshold]) -> GateResult:
    result = evaluate_gate(metrics, thresholds)
    if not result.passed:
        raise QualityGateError(result)
    return result


def default_thresholds(task: str, gate: Optional[QualityGateSettings] = None) -> List[GateThreshold]:
    """Thresholds from settings (APP_GATE__MIN_R2, APP_GATE__MIN_ACCURACY, ...)."""
    gate = gate or QualityGateSettings()
    if task == "regression":
        thresholds = [GateThreshold("r2", minimum=gate.min_r2)]
        if gate.max_mape is not None:
            thresholds.append(GateThreshold("mape", maximum=gate.max_mape))
    elif task == "classification":
        thresholds = [GateThreshold("accuracy", minimum=gate.min_accuracy)]
        if gate.min_f1 is not None:
            thresholds.append(GateThreshold("f1", minimum=gate.min_f1))
    else:
        raise ValueError(f"Unknown task '{task}'")
    return thresholds


def parse_threshold(text: str) -> GateThreshold:
    """
    Parse CLI thresholds such as 'r2>=0.6' or 'mape<=0.3'.
    """
    for op in (">=", "<="):
        if op in text:
            metric, _, bound = text.partition(op)
            metric = metric.strip()
            if not metric:
                break
            try:
                value = float(bound)
            except ValueError:
                break
            if op == ">=":
                return GateThreshold(metric, minimum=value)
            return GateThreshold(metric, maximum=value)
    raise ValueError(f"Invalid threshold {text!r}, expected 'metric>=value' or 'metric<=value'")
