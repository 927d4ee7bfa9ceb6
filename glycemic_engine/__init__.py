"""Glycemic therapy calculation engine.

Pure, deterministic calculations over glucose readings and treatment
events: trend direction and delta, carbohydrates on board, bolus wizard
preview, and aggregate glucose statistics.
"""

__version__ = "0.1.0"
