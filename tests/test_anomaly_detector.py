"""Tests for monthly spending anomaly detection."""

from decimal import Decimal

from ledger_insights.models.core import EngineConfig, PeriodicReport, ReportRow
from ledger_insights.utils.anomaly_detector import AnomalyDetector


MONTHS = ['2025-01', '2025-02', '2025-03', '2025-04', '2025-05']


def report(**rows):
    return PeriodicReport(
        periods=MONTHS,
        rows=[ReportRow(name, [Decimal(str(a)) for a in amounts]) for name, amounts in rows.items()],
    )


class TestAnomalyDetector:
    """Test cases for AnomalyDetector"""

    def setup_method(self):
        self.detector = AnomalyDetector(EngineConfig())

    def test_spending_spike(self):
        anomalies = self.detector.detect(report(**{'expenses:food': [100, 105, 98, 102, 400]}))

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.category == 'food'
        assert anomaly.month == '2025-05'
        assert anomaly.amount == 400.0
        assert anomaly.average == 161.0
        assert anomaly.deviation == 2.0
        assert anomaly.severity == 'high'
        assert anomaly.direction == 'above'

    def test_flat_spending_has_no_anomalies(self):
        assert self.detector.detect(report(**{'expenses:rent': [950, 950, 950, 950, 950]})) == []

    def test_too_few_non_zero_months(self):
        assert self.detector.detect(report(**{'expenses:travel': [0, 0, 500, 0, 20]})) == []

    def test_zero_months_are_ignored(self):
        anomalies = self.detector.detect(report(**{'expenses:fuel': [0, 50, 52, 48, 150]}))
        assert [a.month for a in anomalies] == ['2025-05']
        assert anomalies[0].average == 75.0

    def test_negative_balances_use_magnitude(self):
        anomalies = self.detector.detect(report(**{'expenses:food': [-100, -105, -98, -102, -400]}))
        assert anomalies[0].amount == 400.0
        assert anomalies[0].direction == 'above'

    def test_medium_severity_below(self):
        # Population z-score of the 10 is about -1.73
        detector = AnomalyDetector(EngineConfig(anomaly_threshold=1.5, high_severity_threshold=2.0))
        anomalies = detector.detect(report(**{'expenses:misc': [10, 40, 40, 40]}))

        assert len(anomalies) == 1
        assert anomalies[0].direction == 'below'
        assert anomalies[0].severity == 'medium'
        assert anomalies[0].deviation == -1.73

    def test_ordering_high_first_then_by_magnitude(self):
        anomalies = self.detector.detect(report(**{
            'expenses:misc': [10, 40, 40, 40],
            'expenses:food': [100, 105, 98, 102, 400],
            'expenses:bills': [50, 50, 50, 50, 50],
        }))
        assert [(a.category, a.severity) for a in anomalies] == [('food', 'high'), ('misc', 'medium')]

    def test_nested_category_name(self):
        anomalies = self.detector.detect(report(**{'expenses:food:groceries': [100, 105, 98, 102, 400]}))
        assert anomalies[0].category == 'food:groceries'

    def test_configurable_threshold(self):
        detector = AnomalyDetector(EngineConfig(anomaly_threshold=2.5, high_severity_threshold=3.0))
        assert detector.detect(report(**{'expenses:food': [100, 105, 98, 102, 400]})) == []

    def test_threshold_uses_unrounded_z_score(self):
        # z of the 10 is about -1.4995, which rounds to -1.5 but stays under the threshold
        assert self.detector.detect(report(**{'expenses:misc': [10, 30, 40, 51.6]})) == []

    def test_just_over_threshold_is_flagged(self):
        # z of the 10 is about -1.5009
        anomalies = self.detector.detect(report(**{'expenses:misc': [10, 30, 40, 51.5]}))
        assert [(a.month, a.deviation, a.severity) for a in anomalies] == [('2025-01', -1.5, 'medium')]
