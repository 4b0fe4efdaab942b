"""Shared pytest fixtures for the context service tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Reset cached settings, wired components and route overrides.

    Settings and the component graph are process-wide caches; a test that
    changes the environment or injects a fake must not leak into the next.
    """
    from friendo.api.routes import commitments, webhooks_whatsapp
    from friendo.infra.settings import reset_settings
    from friendo.observability import wide_event
    from friendo.services.wiring import reset_wiring

    def _reset():
        reset_settings()
        reset_wiring()
        webhooks_whatsapp._set_dispatcher(None)
        commitments._set_commitment_service(None)
        wide_event.clear()

    _reset()
    yield
    _reset()
