# Warehouse live-server test suite
#
# This package contains:
# - API tests against a running backend (pytest + httpx)
# - Stress/load tests (Locust)
#
# Run with: pytest tests/api   |   locust -f tests/stress/locustfile.py
