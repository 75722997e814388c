from common.workers.launcher import WorkerLauncher
from packages.billing.workers.payment_sync_worker import PaymentSyncWorker

if __name__ == "__main__":
    WorkerLauncher().run(worker_factory=PaymentSyncWorker, worker_name="Billing Payment Sync Worker")
