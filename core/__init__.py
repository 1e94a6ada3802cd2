"""
Core Package

Contains the building blocks shared by the trade pipeline:
- Schemas: Pydantic models for trades, candles and historical ticks
- Config: Pydantic Settings for the candle interval and logging
- Logging: Project-wide logger setup
- Utils: Interval/timestamp helpers and the background task spawner
"""
