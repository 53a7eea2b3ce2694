"""RateIt: entity resolution and summary-driven insights for crowdsourced reviews."""

__version__ = "0.1.0"
