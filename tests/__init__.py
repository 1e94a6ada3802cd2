"""
Test Suite

Contains unit tests for the trade pipeline.

Structure:
- tests/unit/: Tests for individual components (schemas, dispatcher, aggregator, decoding)

Uses pytest with pytest-asyncio for testing async functionality.
"""
