"""
Pytest markers and collection hooks for the diving platform tests.

Markers are added from the test file location so suites can be selected
with ``-m unit``, ``-m integration``, ``-m payments`` and so on.
"""

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "auth: mark test as authentication-related")
    config.addinivalue_line("markers", "security: mark test as security-related")
    config.addinivalue_line("markers", "api: mark test as API endpoint test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "controllers: mark test as controller-related")
    config.addinivalue_line("markers", "services: mark test as service layer test")
    config.addinivalue_line("markers", "bookings: mark test as booking-related")
    config.addinivalue_line("markers", "payments: mark test as payment-related")
    config.addinivalue_line("markers", "notifications: mark test as notification-related")
    config.addinivalue_line("markers", "mobile: mark test as device/sync-related")
    config.addinivalue_line("markers", "jobs: mark test as background job test")


def pytest_collection_modifyitems(config, items):
    """Modify test items during collection."""
    for item in items:
        path = str(item.fspath)

        if "unit" in path:
            item.add_marker(pytest.mark.unit)

        if "integration" in path:
            item.add_marker(pytest.mark.integration)

        if "auth" in path or "auth" in item.name:
            item.add_marker(pytest.mark.auth)

        if "controller" in path:
            item.add_marker(pytest.mark.controllers)

        if "service" in path:
            item.add_marker(pytest.mark.services)

        if "booking" in path or "waitlist" in item.name:
            item.add_marker(pytest.mark.bookings)

        if "payment" in path or "hyperpay" in path:
            item.add_marker(pytest.mark.payments)

        if "notification" in path or "preference" in path:
            item.add_marker(pytest.mark.notifications)

        if "sync" in path or "device" in path or "mobile" in path:
            item.add_marker(pytest.mark.mobile)

        if "jobs" in path:
            item.add_marker(pytest.mark.jobs)


@pytest.fixture
def response_helper():
    """Assertions shared by API tests."""

    class ResponseHelper:
        @staticmethod
        def assert_json_response(response, expected_status=200):
            assert response.status_code == expected_status, response.get_data(as_text=True)
            return response.get_json()

        @staticmethod
        def assert_error(response, expected_status, expected_code=None):
            assert response.status_code == expected_status, response.get_data(as_text=True)
            body = response.get_json()
            assert body["success"] is False
            if expected_code is not None:
                assert body["error"]["code"] == expected_code
            return body["error"]

    return ResponseHelper()
