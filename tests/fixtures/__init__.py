# Test payloads as they arrive on the wire (camelCase)

SAMPLE_USAGE_EVENT = {
    "organizationId": "org_acme_42",
    "featureKey": "api_calls",
    "quantity": "3",
    "unit": "call",
    "recordedAt": "2024-01-05T12:00:00Z",
    "source": "PRODUCT_APP",
}

# Sample usage aggregation job (subscriptionId will be added dynamically in tests)
SAMPLE_USAGE_AGGREGATION_JOB = {
    "organizationId": "org_acme_42",
    "periodStart": "2024-01-01T00:00:00Z",
    "periodEnd": "2024-01-02T00:00:00Z",
    "resolution": "daily",
}

SAMPLE_INVOICE_JOB = {
    "organizationId": "org_acme_42",
    "periodStart": "2024-01-01T00:00:00Z",
    "periodEnd": "2024-02-01T00:00:00Z",
    "usageCharges": [
        {"featureKey": "api_calls", "unitAmountCents": 2, "unit": "call"},
    ],
}

# Sample payment sync job (invoiceId will be added dynamically in tests)
SAMPLE_PAYMENT_SYNC_JOB = {
    "organizationId": "org_acme_42",
    "event": "payment_succeeded",
    "externalPaymentId": "pi_3Nx",
    "metadata": {"providerEventId": "evt_1"},
}
