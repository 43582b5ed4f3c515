"""Configuration for the NOTAM geometry decoder."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Logging level
    LOG_LEVEL = os.getenv("NOTAMGEO_LOG_LEVEL", "WARNING")

    # Segments used to approximate radius circles in GeoJSON output
    CIRCLE_SEGMENTS = int(os.getenv("NOTAMGEO_CIRCLE_SEGMENTS", "64"))

    # Larger radii (e.g. a Q) line radius of 999 NM) are exported as points
    MAX_CIRCLE_RADIUS_NM = float(os.getenv("NOTAMGEO_MAX_CIRCLE_RADIUS_NM", "500"))

    # Decimals of the rounded location used to group markers (4 ~ 10 m)
    LOCATION_PRECISION = int(os.getenv("NOTAMGEO_LOCATION_PRECISION", "4"))

    @classmethod
    def validate(cls):
        """Validate configuration values."""
        if cls.LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {cls.LOG_LEVEL}")
        if cls.CIRCLE_SEGMENTS < 8:
            raise ValueError("CIRCLE_SEGMENTS must be at least 8")
        if cls.MAX_CIRCLE_RADIUS_NM <= 0:
            raise ValueError("MAX_CIRCLE_RADIUS_NM must be positive")
        if not 0 <= cls.LOCATION_PRECISION <= 8:
            raise ValueError("LOCATION_PRECISION must be between 0 and 8")
        return True
