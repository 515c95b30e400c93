# Warehouse Live-Server Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - Test database provisioning (ephemeral SQLite per test run)
# - A backend server started with `flask run`
# - Authentication helpers
# - Failure message formatting

import os
import sys
import time
import tempfile
import subprocess
import shutil
from pathlib import Path
from typing import Generator, Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))

ADMIN_EMAIL = "admin@warehouse.test"
CLERK_EMAIL = "clerk@warehouse.test"
VIEWER_EMAIL = "viewer@warehouse.test"
TEST_PASSWORD = "TestPass123"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")

    # Timeouts
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))

    # Concurrency
    concurrent_workers: int = int(os.environ.get("TEST_CONCURRENT_WORKERS", "8"))


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Failure with a readable breakdown:
    scenario, expected, actual, likely cause, code location.
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]
        if self.response is not None:
            lines.append(f"HTTP {self.response.status_code}: {self.response.text[:1000]}")
        for key, value in self.extra_context.items():
            lines.append(f"  {key}: {value}")
        lines.append("=" * 80)
        return "\n".join(lines)


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from response status."""
    causes = {
        400: "Invalid request - missing field, bad number, or unit rule violated",
        401: "Authentication failed - token invalid/missing or session expired",
        403: "Permission denied - user lacks the flag for this action",
        404: "Resource not found - wrong or deleted product/user ID",
        409: "Conflict - insufficient stock, ledger history, or duplicate email",
        500: "Server error - check backend logs for stack trace",
        503: "Storage unavailable - database locked or unreachable",
    }
    return causes.get(response.status_code, f"Unexpected status code {response.status_code}")


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
):
    """Raise TestFailure unless response has expected_status."""
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )


# =============================================================================
# HTTP CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """HTTP client wrapper holding one bearer token."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)
        self.token: Optional[str] = None
        self.current_user: Optional[Dict] = None

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None) -> httpx.Response:
        return self.client.get(f"{self.base_url}{path}", headers=self._headers(), params=params)

    def post(self, path: str, json: Optional[Dict] = None) -> httpx.Response:
        return self.client.post(f"{self.base_url}{path}", headers=self._headers(), json=json)

    def put(self, path: str, json: Optional[Dict] = None) -> httpx.Response:
        return self.client.put(f"{self.base_url}{path}", headers=self._headers(), json=json)

    def delete(self, path: str) -> httpx.Response:
        return self.client.delete(f"{self.base_url}{path}", headers=self._headers())

    def login(self, email: str, password: str = TEST_PASSWORD) -> bool:
        """Authenticate and store token."""
        response = self.post("/api/auth/login", json={"email": email, "password": password})
        if response.status_code == 200:
            data = response.json()
            self.token = data.get("token")
            self.current_user = data.get("user")
            return True
        return False

    def close(self):
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """Manages the Flask backend server lifecycle for tests."""

    def __init__(self, config: TestConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None
        self.log_file = None

    def start(self) -> bool:
        """Start the Flask server against a throwaway SQLite file."""
        temp_dir = tempfile.mkdtemp(prefix="warehouse_test_")
        self.db_file = Path(temp_dir) / "test_warehouse.sqlite3"

        env = os.environ.copy()
        env["DATABASE_URL"] = f"sqlite:///{self.db_file}"
        env["ADMIN_EMAIL"] = ADMIN_EMAIL
        env["FLASK_APP"] = "wsgi.py"

        self.initialize_db()

        port = self.config.backend_base_url.rsplit(":", 1)[-1]
        # Server output goes to a file; an unread pipe would block the server once full
        self.log_file = open(Path(temp_dir) / "server.log", "w")
        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "run", "--port", port],
            cwd=str(BACKEND_DIR),
            env=env,
            stdout=self.log_file,
            stderr=subprocess.STDOUT,
        )
        return self._wait_for_server()

    def _wait_for_server(self) -> bool:
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/health", timeout=2.0)
                if response.status_code in (200, 503):  # 503 means degraded but running
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

        if self.log_file:
            self.log_file.close()
            self.log_file = None

        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)

    def initialize_db(self):
        """Create the schema and the three test accounts."""
        from warehouse import create_app
        from warehouse.extensions import db
        from warehouse.services.auth_service import create_user

        app = create_app({
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_file}",
            "ADMIN_EMAIL": ADMIN_EMAIL,
        })
        with app.app_context():
            db.create_all()
            create_user(ADMIN_EMAIL, TEST_PASSWORD)
            create_user(CLERK_EMAIL, TEST_PASSWORD, {
                "can_add_products": True,
                "can_manage_transactions": True,
                "can_view_reports": True,
            })
            create_user(VIEWER_EMAIL, TEST_PASSWORD)


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    return TestConfig()


@pytest.fixture(scope="session")
def server_manager(test_config: TestConfig) -> Generator[ServerManager, None, None]:
    """
    Server is started once per test session.
    With TEST_EXTERNAL_SERVER set, an already running (and seeded) server is used.
    """
    manager = ServerManager(test_config)

    if os.environ.get("TEST_EXTERNAL_SERVER"):
        yield manager
    else:
        if not manager.start():
            pytest.fail("Failed to start test server")
        yield manager
        manager.stop()


def _logged_in(test_config: TestConfig, email: str) -> APIClient:
    client = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    if not client.login(email):
        pytest.fail(f"Failed to login as {email}")
    return client


@pytest.fixture
def admin_client(test_config, server_manager) -> Generator[APIClient, None, None]:
    client = _logged_in(test_config, ADMIN_EMAIL)
    yield client
    client.close()


@pytest.fixture
def clerk_client(test_config, server_manager) -> Generator[APIClient, None, None]:
    client = _logged_in(test_config, CLERK_EMAIL)
    yield client
    client.close()


@pytest.fixture
def viewer_client(test_config, server_manager) -> Generator[APIClient, None, None]:
    client = _logged_in(test_config, VIEWER_EMAIL)
    yield client
    client.close()


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "concurrent: Concurrency tests")
