"""
Metrics instrumentation (Prometheus).
"""
from functools import wraps
import time

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry for the clinic API.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        """Initialize metrics registry."""
        self._setup_metrics()

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # Workflow Metrics
        # ===================================================================
        self.workflow_transitions_total = Counter(
            'clinic_workflow_transitions_total',
            'Consultation workflow status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.consultation_completion_duration_seconds = Histogram(
            'clinic_consultation_completion_duration_seconds',
            'Duration of consultation completion (record creation + transition)',
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
        )

        # ===================================================================
        # Clinical Metrics
        # ===================================================================
        self.controls_created_total = Counter(
            'clinic_controls_created_total',
            'Control consultations created',
            ['source']  # manual, vitals
        )

        self.treatment_sessions_generated_total = Counter(
            'clinic_treatment_sessions_generated_total',
            'Treatment sessions generated',
            ['frequency']
        )

        self.treatment_sessions_closed_total = Counter(
            'clinic_treatment_sessions_closed_total',
            'Treatment sessions moved to a terminal status',
            ['status']
        )

        # ===================================================================
        # Stock Metrics
        # ===================================================================
        self.stock_movements_total = Counter(
            'clinic_stock_movements_total',
            'Stock movements',
            ['type', 'result']
        )

        # ===================================================================
        # Billing Metrics
        # ===================================================================
        self.invoices_created_total = Counter(
            'clinic_invoices_created_total',
            'Invoices created',
            ['invoice_type']
        )

        self.payments_total = Counter(
            'clinic_payments_total',
            'Payments recorded',
            ['payment_method']
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.consultation_completion_duration_seconds)
            def complete_consultation(workflow):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
