"""Vote cart planning and execution.

This package turns a user's pending vote cart into the ordered on-chain calls
the MultiVault protocol needs:

- amounts: exact wei arithmetic (slippage, auto-adjust, minimums)
- cart: in-memory carts and their persistence
- planning: triple deduplication, curve availability, step planning, funds checks
- chain: contract gateway boundary, previews, vault init checks, throttling
- execution: redeem orchestration and the sequential batch executor
- claims: atom reference resolution and single-claim creation

All amounts are Python ints denominated in wei.
"""
