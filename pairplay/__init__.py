"""
PairPlay - Partner Session Synchronization Engine

Lets two linked partner accounts play short turn-based mini-games
asynchronously, sharing one mutable session record. The engine provides:
- A pure, per-game state machine (turn order, readiness, reveals)
- A client-side coordinator that reconciles the shared record
- Storage, change-feed and history adapters (in-memory and HTTP)
- A FastAPI service hosting the record store and change feed
"""

__version__ = "0.1.0"
