"""Blackjack trainer: table state machine, basic strategy oracle and HTTP API."""

__version__ = "2.0.0"
