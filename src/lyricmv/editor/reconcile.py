"""Duration reconciliation: make a generated clip last exactly its target time.

The method is planned from the measured and target durations alone, then
carried out by an ordered chain of strategies where the first one that
succeeds wins.
"""

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from . import media
from ..exceptions import ReconciliationError

logger = logging.getLogger(__name__)

# Clips within this many seconds of the target are left alone
DURATION_TOLERANCE = 0.1
# Longest slow-down applied before switching to a frozen last frame
MAX_STRETCH_RATIO = 1.5


class ReconcileMethod(str, Enum):
    NONE = "none"
    TRIM = "trim"
    STRETCH = "stretch"
    FREEZE = "freeze"


@dataclass
class ReconcileResult:
    """Outcome of reconciling one clip.

    Attributes:
        path: The reconciled clip.
        method: Method that produced the clip.
        planned: Method chosen before any fallback.
        source_duration: Measured duration of the input clip.
        target_duration: Requested duration.
        still_duration: Length of the appended still, for FREEZE.
    """

    path: Path
    method: ReconcileMethod
    planned: ReconcileMethod
    source_duration: float
    target_duration: float
    still_duration: Optional[float] = None

    @property
    def fell_back(self) -> bool:
        return self.method != self.planned


def plan_reconciliation(actual: float, target: float) -> ReconcileMethod:
    """Choose how to bring a clip of ``actual`` seconds to ``target`` seconds."""
    if abs(actual - target) < DURATION_TOLERANCE:
        return ReconcileMethod.NONE
    if actual > target:
        return ReconcileMethod.TRIM
    if actual <= 0 or target / actual > MAX_STRETCH_RATIO:
        return ReconcileMethod.FREEZE
    return ReconcileMethod.STRETCH


def _trim(input_path: Path, output_path: Path, actual: float, target: float) -> Optional[float]:
    media.trim_clip(input_path, output_path, target)
    return None


def _stretch(input_path: Path, output_path: Path, actual: float, target: float) -> Optional[float]:
    media.stretch_clip(input_path, output_path, target)
    return None


def _freeze(input_path: Path, output_path: Path, actual: float, target: float) -> Optional[float]:
    """Append the last frame, held for ``target - actual`` seconds."""
    still_duration = target - actual
    work_dir = output_path.parent / f".{output_path.stem}_freeze"
    work_dir.mkdir(parents=True, exist_ok=True)

    try:
        frame = media.extract_last_frame(input_path, work_dir / "last_frame.png")
        fps = media.probe_fps(input_path)
        still = media.still_clip(frame, work_dir / "still.mp4", still_duration, fps)
        media.concat_clips([input_path, still], output_path)
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    return still_duration


Strategy = Callable[[Path, Path, float, float], Optional[float]]

STRATEGY_CHAINS: Dict[ReconcileMethod, List[Tuple[ReconcileMethod, Strategy]]] = {
    ReconcileMethod.TRIM: [(ReconcileMethod.TRIM, _trim)],
    ReconcileMethod.STRETCH: [
        (ReconcileMethod.STRETCH, _stretch),
        (ReconcileMethod.FREEZE, _freeze),
    ],
    ReconcileMethod.FREEZE: [(ReconcileMethod.FREEZE, _freeze)],
}


def reconcile_clip(
    input_path: Path,
    output_path: Path,
    target: float,
    actual: Optional[float] = None,
) -> ReconcileResult:
    """Write a copy of ``input_path`` lasting ``target`` seconds to ``output_path``.

    Args:
        input_path: Clip to reconcile.
        output_path: Where to write the result.
        target: Target duration in seconds.
        actual: Measured duration of the input; probed when omitted.

    Returns:
        ReconcileResult describing what was done.

    Raises:
        ReconciliationError: If every strategy in the chain fails.
    """
    if actual is None:
        actual = media.probe_duration(input_path)

    planned = plan_reconciliation(actual, target)

    if planned is ReconcileMethod.NONE:
        media.copy_clip(input_path, output_path)
        return ReconcileResult(output_path, planned, planned, actual, target)

    failures: List[str] = []
    for method, strategy in STRATEGY_CHAINS[planned]:
        try:
            still_duration = strategy(input_path, output_path, actual, target)
        except Exception as e:
            logger.warning(f"{method.value} failed for {input_path.name}: {e}")
            failures.append(f"{method.value}: {e}")
            output_path.unlink(missing_ok=True)
            continue

        if method is not planned:
            logger.warning(f"{input_path.name}: {planned.value} fell back to {method.value}")
        logger.debug(
            f"Reconciled {input_path.name} {actual:.2f}s -> {target:.2f}s via {method.value}"
        )
        return ReconcileResult(output_path, method, planned, actual, target, still_duration)

    raise ReconciliationError(
        f"Could not reconcile {input_path.name} from {actual:.2f}s to {target:.2f}s",
        details="; ".join(failures),
    )
