"""Conversational order-support engine for the FloristMarket marketplace."""

__version__ = "0.1.0"
