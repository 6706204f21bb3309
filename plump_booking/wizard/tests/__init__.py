"""
Tests for the Get Plump Booking Wizard

Test suite covering:
- Session reducer and invariants
- Step router dispatch
- Multi-location and multi-date aggregation
- Booking API client error normalization
- Booking flow from welcome to confirmation
- Validation and formatting helpers
- HTTP endpoints

Run tests with:
    python -m pytest plump_booking/wizard/tests/ -v
"""
