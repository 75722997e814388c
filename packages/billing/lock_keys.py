"""Lock key generators for billing package."""


def invoice_payment_lock_key(invoice_id: int) -> str:
    """Generate lock key for payment sync on one invoice.

    Payment sync jobs read and rewrite the invoice balance, so two jobs for
    the same invoice must not run at the same time.
    """
    return f"billing_invoice_payment:{invoice_id}"
