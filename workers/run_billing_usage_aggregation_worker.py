from common.workers.launcher import WorkerLauncher
from packages.billing.workers.usage_aggregation_worker import UsageAggregationWorker

if __name__ == "__main__":
    WorkerLauncher().run(worker_factory=UsageAggregationWorker, worker_name="Billing Usage Aggregation Worker")
