"""Daily P&L reconciliation and snapshot service for the trading-operations dashboard."""
