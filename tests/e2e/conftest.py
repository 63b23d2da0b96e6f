"""Live-run fixtures: logging, Allure environment and the shared auth state."""
import anyio
import pytest

from storefront_qa.allure_support import write_environment
from storefront_qa.global_setup import run_global_setup, run_global_teardown
from storefront_qa.log import configure_logging


@pytest.fixture(scope="session", autouse=True)
def global_auth_state(live_config):
    """Run global setup once before the first live test and teardown after the last."""
    configure_logging(live_config.log_dir, live_config.log_level)
    write_environment(live_config)

    result = anyio.run(run_global_setup, live_config)
    yield result

    anyio.run(run_global_teardown, live_config)
