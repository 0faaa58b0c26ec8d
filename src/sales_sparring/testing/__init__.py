"""
Testing module - engine and service test suites.

Each test_*.py module runs under pytest and can also be executed directly
for a rich summary:

    uv run python src/sales_sparring/testing/test_service.py
"""
