"""
Polymarket Arbitrage Bot

Polls prediction markets, detects arbitrage opportunities and executes them
(dry run unless trading is enabled).

Entry point: python -m polyarb.main

Key Modules:
- polyarb.clients: Exchange clients (Polymarket HTTP API and mock)
- polyarb.monitoring: Polling loop, market state, events, statistics
- polyarb.arbitrage: Opportunity detection strategies and filters
- polyarb.risk: Position ledger and admission checks
- polyarb.execution: Trade execution with retries
- polyarb.api: FastAPI status server
"""

__version__ = "0.1.0"
