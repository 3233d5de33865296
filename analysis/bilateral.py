"""Bilateral (left vs right) comparison of two analyzed trials."""

import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Union

from assessment.constants import (
    BRADYKINESIA_MILD, BRADYKINESIA_SIGNIFICANT, RHYTHM_ASYMMETRY_MILD,
    RHYTHM_ASYMMETRY_SIGNIFICANT, RHYTHM_VARIABILITY_MILD,
    RHYTHM_VARIABILITY_SIGNIFICANT, SPEED_ASYMMETRY_MILD,
    SPEED_ASYMMETRY_SIGNIFICANT
)
from tracking.trial_recorder import Trial
from .statistics import PerformanceSummary, analyze

logger = logging.getLogger(__name__)

ABNORMAL_RECOMMENDATIONS = [
    'Consider comprehensive neurological evaluation',
    'Monitor progression with serial testing',
    'Correlate with clinical history and examination',
    'Consider additional motor assessments if indicated',
]

NORMAL_RECOMMENDATIONS = [
    'Normal results - no immediate follow-up needed',
    'Consider annual screening if risk factors present',
]


@dataclass(frozen=True)
class Finding:
    """A single descriptive finding. Not a diagnosis."""
    kind: str  # speed_asymmetry, rhythm_asymmetry, bradykinesia, rhythm_variability, normal
    severity: str  # mild, significant, none
    description: str
    clinical_note: str


@dataclass(frozen=True)
class BilateralReport:
    """Result of comparing two sides."""
    label_a: str
    label_b: str
    speed_asymmetry: float
    rhythm_asymmetry: float
    average_rate: float
    average_rhythm_score: float
    findings: List[Finding] = field(default_factory=list)

    @property
    def has_abnormalities(self) -> bool:
        return any(f.kind != 'normal' for f in self.findings)

    @property
    def summary(self) -> str:
        count = sum(1 for f in self.findings if f.kind != 'normal')
        if count == 0:
            return 'Normal motor function detected'
        return f'{count} potential motor finding(s) identified'

    @property
    def recommendations(self) -> List[str]:
        if self.has_abnormalities:
            return list(ABNORMAL_RECOMMENDATIONS)
        return list(NORMAL_RECOMMENDATIONS)

    def get_finding(self, kind: str):
        for finding in self.findings:
            if finding.kind == kind:
                return finding
        return None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['has_abnormalities'] = self.has_abnormalities
        data['summary'] = self.summary
        data['recommendations'] = self.recommendations
        return data


def _severity(value: float, significant: float, below: bool = False) -> str:
    if below:
        return 'significant' if value < significant else 'mild'
    return 'significant' if value > significant else 'mild'


def compare(a: Union[Trial, PerformanceSummary],
            b: Union[Trial, PerformanceSummary]) -> BilateralReport:
    """
    Compare two sides for asymmetry, slowness and rhythm variability.

    All thresholds are exclusive: a rhythm difference of exactly 40 points is
    a mild asymmetry, not a significant one.

    Args:
        a: First side (trial or its summary)
        b: Second side (trial or its summary)

    Returns:
        BilateralReport whose findings list is never empty
    """
    summary_a = a if isinstance(a, PerformanceSummary) else analyze(a)
    summary_b = b if isinstance(b, PerformanceSummary) else analyze(b)

    rate_a, rate_b = summary_a.average_rate, summary_b.average_rate
    score_a, score_b = summary_a.rhythm_score, summary_b.rhythm_score

    speed_difference = abs(rate_a - rate_b)
    rhythm_difference = abs(score_a - score_b)
    avg_speed = (rate_a + rate_b) / 2
    avg_rhythm = (score_a + score_b) / 2

    findings: List[Finding] = []

    if speed_difference > SPEED_ASYMMETRY_MILD:
        findings.append(Finding(
            kind='speed_asymmetry',
            severity=_severity(speed_difference, SPEED_ASYMMETRY_SIGNIFICANT),
            description=f'Speed asymmetry detected: {speed_difference:.1f} taps/sec difference between hands',
            clinical_note='May indicate lateralized motor dysfunction or handedness preference',
        ))

    if rhythm_difference > RHYTHM_ASYMMETRY_MILD:
        findings.append(Finding(
            kind='rhythm_asymmetry',
            severity=_severity(rhythm_difference, RHYTHM_ASYMMETRY_SIGNIFICANT),
            description=f'Rhythm inconsistency: {rhythm_difference:.1f}% difference between hands',
            clinical_note='May suggest cerebellar dysfunction or motor planning deficits',
        ))

    if avg_speed < BRADYKINESIA_MILD:
        findings.append(Finding(
            kind='bradykinesia',
            severity=_severity(avg_speed, BRADYKINESIA_SIGNIFICANT, below=True),
            description=f'Slow finger tapping speed: {avg_speed:.1f} taps/sec average',
            clinical_note='May indicate parkinsonian features or general motor slowing',
        ))

    if avg_rhythm < RHYTHM_VARIABILITY_MILD:
        findings.append(Finding(
            kind='rhythm_variability',
            severity=_severity(avg_rhythm, RHYTHM_VARIABILITY_SIGNIFICANT, below=True),
            description=f'Poor rhythm consistency: {avg_rhythm:.1f}% average rhythm score',
            clinical_note='May suggest cerebellar dysfunction or attention deficits',
        ))

    if not findings:
        findings.append(Finding(
            kind='normal',
            severity='none',
            description='No asymmetry, slowing or rhythm variability detected',
            clinical_note='Descriptive screening result only; not a diagnosis',
        ))

    label_a = summary_a.limb_label or 'a'
    label_b = summary_b.limb_label or 'b'
    logger.info("Bilateral %s/%s: speed diff %.2f, rhythm diff %.1f, %d finding(s)",
                label_a, label_b, speed_difference, rhythm_difference, len(findings))

    return BilateralReport(
        label_a=label_a,
        label_b=label_b,
        speed_asymmetry=speed_difference,
        rhythm_asymmetry=rhythm_difference,
        average_rate=avg_speed,
        average_rhythm_score=avg_rhythm,
        findings=findings,
    )
