from common.workers.launcher import WorkerLauncher
from packages.billing.workers.invoice_worker import InvoiceWorker

if __name__ == "__main__":
    WorkerLauncher().run(worker_factory=InvoiceWorker, worker_name="Billing Invoice Worker")
