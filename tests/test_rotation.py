"""Tests for the rotation policy and controller launch."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from certbootstrap.certinfo import CertificateDetails
from certbootstrap.extraction import CertificateRequest
from certbootstrap.rotation import (
    DEFAULT_CERT_GRACE_PERIOD_RATIO,
    DEFAULT_MIN_CERT_GRACE_PERIOD,
    RotationPolicy,
    RotationTask,
    StartupHooks,
    launch_rotation_controller,
)
from certbootstrap.signing import ConstructionError, DEFAULT_CA_CERT_PATH

from conftest import FakeBackend, FakeController


REQUESTS = [CertificateRequest("cert-a", ("svc.a",), "ns1")]


def _details(not_before: datetime, lifetime: timedelta) -> CertificateDetails:
    return CertificateDetails(
        common_name="svc.a",
        domains=["svc.a"],
        not_before=not_before,
        not_after=not_before + lifetime,
    )


class TestRotationPolicy:

    def test_defaults(self):
        policy = RotationPolicy()
        assert policy.grace_period_ratio == DEFAULT_CERT_GRACE_PERIOD_RATIO == 0.5
        assert policy.min_grace_period == DEFAULT_MIN_CERT_GRACE_PERIOD == timedelta(minutes=10)

    def test_grace_period_uses_ratio_of_ttl(self):
        assert RotationPolicy().grace_period(timedelta(hours=24)) == timedelta(hours=12)

    def test_grace_period_has_a_floor(self):
        assert RotationPolicy().grace_period(timedelta(minutes=8)) == timedelta(minutes=10)

    @pytest.mark.parametrize("ratio", [0, -0.1, 1.5])
    def test_invalid_ratio_rejected(self, ratio):
        with pytest.raises(ValueError):
            RotationPolicy(grace_period_ratio=ratio)

    def test_negative_min_grace_period_rejected(self):
        with pytest.raises(ValueError):
            RotationPolicy(min_grace_period=timedelta(seconds=-1))

    def test_needs_rotation_inside_grace_period(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        details = _details(start, timedelta(hours=24))
        policy = RotationPolicy()

        assert not policy.needs_rotation(details, now=start + timedelta(hours=11))
        assert policy.needs_rotation(details, now=start + timedelta(hours=13))

    def test_expired_certificate_needs_rotation(self):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        details = _details(start, timedelta(hours=1))

        assert RotationPolicy().needs_rotation(details, now=start + timedelta(days=1))


class TestLaunchRotationController:

    def test_empty_requests_construct_nothing(self, backend):
        hooks = StartupHooks()

        task = launch_rotation_controller(
            [], RotationPolicy(), DEFAULT_CA_CERT_PATH, None, backend, hooks
        )

        assert task is None
        assert backend.rotation_calls == []
        assert len(hooks) == 0

    def test_registers_start_hook(self, backend):
        hooks = StartupHooks()
        policy = RotationPolicy()
        clients = object()

        task = launch_rotation_controller(
            REQUESTS, policy, DEFAULT_CA_CERT_PATH, clients, backend, hooks
        )

        assert task is not None
        assert task.controller is backend.controller
        assert len(hooks) == 1
        assert backend.rotation_calls == [(REQUESTS, policy, DEFAULT_CA_CERT_PATH, clients)]
        # Registered, not started.
        assert not task.is_running
        assert not backend.controller.started.is_set()

    def test_backend_construction_error_propagates(self):
        error = ConstructionError("bad CA path")
        backend = FakeBackend(construct_error=error)
        hooks = StartupHooks()

        with pytest.raises(ConstructionError) as exc_info:
            launch_rotation_controller(
                REQUESTS, RotationPolicy(), "/nonexistent", None, backend, hooks
            )

        assert exc_info.value is error
        assert len(hooks) == 0

    def test_other_backend_errors_become_construction_error(self):
        backend = FakeBackend(construct_error=TypeError("invalid client"))
        hooks = StartupHooks()

        with pytest.raises(ConstructionError) as exc_info:
            launch_rotation_controller(
                REQUESTS, RotationPolicy(), DEFAULT_CA_CERT_PATH, None, backend, hooks
            )

        assert isinstance(exc_info.value.__cause__, TypeError)
        assert len(hooks) == 0
        assert len(backend.rotation_calls) == 1

    def test_hook_starts_background_loop_until_stop(self, backend, stop_event):
        hooks = StartupHooks()
        task = launch_rotation_controller(
            REQUESTS, RotationPolicy(), DEFAULT_CA_CERT_PATH, None, backend, hooks
        )

        hooks.run(stop_event)

        assert backend.controller.started.wait(5)
        assert task.is_running
        assert backend.controller.run_thread is not threading.current_thread()

        stop_event.set()
        task.join(5)

        assert not task.is_running
        assert backend.controller.stopped.is_set()
        assert task.error is None


class TestRotationTask:

    def test_start_twice_rejected(self, stop_event):
        task = RotationTask(FakeController())
        task.start(stop_event)

        with pytest.raises(RuntimeError):
            task.start(stop_event)

    def test_run_loop_error_is_recorded(self, stop_event):
        error = RuntimeError("watch failed")
        task = RotationTask(FakeController(fail_with=error))

        task.start(stop_event)
        task.join(5)

        assert task.error is error
        assert not task.is_running

    def test_join_before_start_returns(self):
        RotationTask(FakeController()).join(0)


class TestStartupHooks:

    def test_hooks_run_in_order_with_stop_signal(self, stop_event):
        hooks = StartupHooks()
        seen = []
        hooks.add(lambda stop: seen.append(("first", stop)))
        hooks.add(lambda stop: seen.append(("second", stop)))

        hooks.run(stop_event)

        assert seen == [("first", stop_event), ("second", stop_event)]

    def test_hook_failure_propagates(self, stop_event):
        hooks = StartupHooks()

        def broken(stop):
            raise RuntimeError("boom")

        hooks.add(broken)

        with pytest.raises(RuntimeError):
            hooks.run(stop_event)
