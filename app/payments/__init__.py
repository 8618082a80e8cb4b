"""
Payments app for job payments and provider settlement.

This app handles:
- Payment initiation for in-progress jobs (card via Stripe, cash)
- Commission split frozen per transaction
- Crediting, releasing and refunding provider earnings
- Provider wallets, withdrawals and Stripe Connect onboarding
- Stripe webhook handling

Related apps:
    - jobs: Jobs and accepted quotes being paid for
    - authentication: Payers and providers

Usage:
    from payments.services import PaymentService

    result = PaymentService.initiate_payment(job.id, client, "card")
"""
