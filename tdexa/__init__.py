"""Market loading, exchange-rate conversion, layered errors and sample data for TDEX analytics."""

__version__ = "0.1.0"