"""AgriBot: sensor-grounded, multilingual crop advisory chat."""

__version__ = "0.3.0"
