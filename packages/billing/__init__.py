"""
Billing package - usage metering, invoicing and payment reconciliation.

Pipeline stages compose only through persisted state:
- UsageRecorderService: raw usage events
- UsageAggregationService: events -> per-window aggregates
- InvoiceBuilderService: subscription + aggregates -> invoices
- PaymentSyncService: external payment outcomes -> invoice status and credit memos
"""
