"""NEAR treasury API: balances, balance history, prices, swaps and transfers."""
