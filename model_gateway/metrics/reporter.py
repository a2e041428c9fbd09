"""
Stats Reporter for API Responses

Transforms StatsStore snapshots into the StatsResponse schema served by
GET /stats, adding the computed fields (error rate, totals) the store
does not keep.
"""

from model_gateway.metrics.store import StatsSnapshot, StatsStore
from model_gateway.schemas.gateway import ModelStats, StatsResponse


class StatsReporter:
    """
    Generate statistics reports from the stats store.

    Example:
        reporter = StatsReporter(gateway.stats)
        response = reporter.generate_report(model_ids=gateway.registry.ids())
        return response  # Ready for JSON serialization
    """

    def __init__(self, store: StatsStore):
        self._store = store

    @staticmethod
    def model_stats(snapshot: StatsSnapshot) -> ModelStats:
        """Convert one snapshot into its API representation."""
        return ModelStats(
            model_id=snapshot.model_id,
            sample_count=snapshot.sample_count,
            avg_latency_ms=(
                round(snapshot.avg_latency_ms, 2)
                if snapshot.avg_latency_ms is not None
                else None
            ),
            success_count=snapshot.success_count,
            failure_count=snapshot.failure_count,
            error_rate=round(snapshot.error_rate, 4),
            cumulative_cost_usd=round(snapshot.cumulative_cost, 10),
        )

    def generate_report(self, model_ids: list[str] | None = None) -> StatsResponse:
        """
        Generate a complete statistics report.

        Args:
            model_ids: Models to include even if they have no samples yet,
                       in this order; models with recorded stats but not
                       listed (e.g. since removed) follow

        Returns:
            StatsResponse ready for API serialization
        """
        snapshots = self._store.snapshot_all()
        ordered: list[StatsSnapshot] = []
        for model_id in model_ids or []:
            ordered.append(snapshots.pop(model_id, None) or self._store.snapshot(model_id))
        ordered.extend(snapshots.values())

        models = {s.model_id: self.model_stats(s) for s in ordered}
        return StatsResponse(
            window_size=self._store.window_size,
            total_requests=sum(s.total_requests for s in ordered),
            total_cost_usd=round(sum(s.cumulative_cost for s in ordered), 10),
            models=models,
        )
