from typing import Optional

from logic.dropoff_simulator import DropoffReport, StepResult


def pick_worst_step(report: DropoffReport) -> Optional[StepResult]:
    """
    Return the step that lost the most calls, ignoring steps that lost
    nothing and exits that absorbed everything. Ties go to the step
    visited first. ``None`` means there is nothing worth analysing.
    """
    worst: Optional[StepResult] = None
    for result in report.step_results:
        if not 0 < result.drop_rate_percent < 100:
            continue
        if worst is None or result.calls_dropped > worst.calls_dropped:
            worst = result
    return worst
