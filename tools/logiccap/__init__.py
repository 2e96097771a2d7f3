"""logiccap - sigrok logic analyzer capture and SPI/I2C frame export."""

__version__ = "0.1.0"
