"""Tests for plan execution: retry, isolation and cancellation."""

import concurrent.futures
import pytest
from converge.engine.executor import Executor, backoff_delay, call_with_retry, idempotency_key
from converge.engine.models import OperationType
from converge.engine.planner import Planner
from converge.ingest.models import DesiredState, ResourceNode
from converge.providers.memory import MemoryProvider
from converge.state.store import StateStore
from converge.utils.errors import FatalProviderError, TransientProviderError


def _desired(*nodes):
    return DesiredState(resources=list(nodes))


def _node(resource_type, name, *deps, **attributes):
    return ResourceNode(type=resource_type, name=name, depends_on=deps, attributes=attributes)


@pytest.fixture
def provider():
    return MemoryProvider(allow_unknown_types=True)


@pytest.fixture
def store():
    return StateStore()


def _executor(provider, store, sleeps=None, **kwargs):
    recorder = sleeps if sleeps is not None else []
    return Executor(provider, store, base_delay=0.01, max_delay=0.05, sleep=recorder.append, **kwargs)


class TestRetry:

    def test_backoff_grows_and_caps(self):
        first = backoff_delay(1, base_delay=0.5, max_delay=30.0)
        third = backoff_delay(3, base_delay=0.5, max_delay=30.0)
        capped = backoff_delay(20, base_delay=0.5, max_delay=30.0)

        assert 0.5 <= first <= 0.6
        assert 2.0 <= third <= 2.4
        assert capped == 30.0

    def test_call_with_retry_recovers(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise TransientProviderError("throttled")
            return "ok"

        sleeps = []
        assert call_with_retry(flaky, max_attempts=5, sleep=sleeps.append) == "ok"
        assert len(attempts) == 3
        assert len(sleeps) == 2

    def test_call_with_retry_gives_up(self):
        def always():
            raise TransientProviderError("throttled")

        with pytest.raises(TransientProviderError, match="Gave up after 3 attempts") as excinfo:
            call_with_retry(always, address="thing.a", max_attempts=3, sleep=lambda _: None)
        assert excinfo.value.address == "thing.a"

    def test_fatal_not_retried(self):
        attempts = []

        def fatal():
            attempts.append(1)
            raise FatalProviderError("denied")

        with pytest.raises(FatalProviderError):
            call_with_retry(fatal, max_attempts=5, sleep=lambda _: None)
        assert len(attempts) == 1

    def test_idempotency_key_stable(self):
        assert idempotency_key("thing.a", {"x": 1, "y": 2}) == idempotency_key("thing.a", {"y": 2, "x": 1})
        assert idempotency_key("thing.a", {"x": 1}) != idempotency_key("thing.b", {"x": 1})


class TestExecutor:

    def test_transient_create_retried(self, provider, store):
        provider.fail_next("create", "alpha", TransientProviderError("throttled"), times=2)
        plan = Planner(provider, store).plan(_desired(_node("alpha", "a")))

        sleeps = []
        result = _executor(provider, store, sleeps).apply(plan)

        assert result.success
        assert result.applied == ["alpha.a"]
        assert len(sleeps) == 2
        assert provider.resource_count() == 1

    def test_exhausted_retries_fail_operation(self, provider, store):
        provider.fail_next("create", "alpha", TransientProviderError("throttled"), times=5)
        plan = Planner(provider, store).plan(_desired(_node("alpha", "a")))

        result = _executor(provider, store, max_attempts=3).apply(plan)

        assert not result.success
        assert "Gave up after 3 attempts" in result.failed["alpha.a"]
        assert "alpha.a" not in store

    def test_failure_isolated_to_subgraph(self, provider, store):
        desired = _desired(
            _node("alpha", "root"),
            _node("gamma", "child", "alpha.root"),
            _node("beta", "other"),
            _node("gamma", "other_child", "beta.other"),
        )
        provider.fail_next("create", "alpha", FatalProviderError("access denied"))
        plan = Planner(provider, store).plan(desired)

        result = _executor(provider, store).apply(plan)

        assert set(result.failed) == {"alpha.root"}
        assert "access denied" in result.failed["alpha.root"]
        assert result.skipped == ["gamma.child"]
        assert set(result.applied) == {"beta.other", "gamma.other_child"}
        assert store.addresses() == ["beta.other", "gamma.other_child"]

    def test_dependencies_complete_before_dependents(self, provider, store):
        desired = _desired(
            _node("thing", "c", "thing.b"),
            _node("thing", "b", "thing.a"),
            _node("thing", "a"),
        )
        plan = Planner(provider, store).plan(desired)

        result = _executor(provider, store, parallelism=8).apply(plan)

        assert result.applied == ["thing.a", "thing.b", "thing.c"]

    def test_reference_resolved_from_committed_state(self, provider, store):
        desired = _desired(
            _node("thing", "a", label="first"),
            _node("thing", "b", parent="${thing.a.id}", text="of ${thing.a.label}"),
        )
        plan = Planner(provider, store).plan(desired)
        result = _executor(provider, store).apply(plan)

        assert result.success
        a = store.get("thing.a")
        b = store.get("thing.b")
        assert b.attributes["parent"] == a.provider_id
        assert b.attributes["text"] == "of first"
        assert b.dependencies == ["thing.a"]

    def test_cancel_leaves_rest_unstarted(self, store):
        class CancellingProvider(MemoryProvider):
            executor = None

            def create(self, resource_type, attributes, idempotency_key=None):
                result = super().create(resource_type, attributes, idempotency_key)
                self.executor.cancel()
                return result

        provider = CancellingProvider(allow_unknown_types=True)
        desired = _desired(
            _node("thing", "a"),
            _node("thing", "b", "thing.a"),
            _node("thing", "c", "thing.b"),
        )
        plan = Planner(provider, store).plan(desired)
        executor = _executor(provider, store, parallelism=1)
        provider.executor = executor

        result = executor.apply(plan)

        assert result.interrupted
        assert not result.success
        assert result.applied == ["thing.a"]
        assert result.cancelled == ["thing.b", "thing.c"]
        assert store.addresses() == ["thing.a"]

    def test_keyboard_interrupt_commits_in_flight_and_cancels_rest(self, provider, tmp_path, monkeypatch):
        path = tmp_path / "state.jsonl"
        store = StateStore(path)
        desired = _desired(
            _node("thing", "a"),
            _node("thing", "b", "thing.a"),
            _node("thing", "c", "thing.b"),
        )
        plan = Planner(provider, store).plan(desired)
        calls = []

        def interrupting_wait(futures, *args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise KeyboardInterrupt
            return concurrent.futures.wait(futures, *args, **kwargs)

        monkeypatch.setattr("converge.engine.executor.wait", interrupting_wait)

        result = _executor(provider, store, parallelism=1).apply(plan)

        assert result.interrupted
        assert not result.success
        assert result.applied == ["thing.a"]
        assert result.cancelled == ["thing.b", "thing.c"]
        assert provider.resource_count() == 1
        assert StateStore(path).addresses() == ["thing.a"]

    def test_failed_replace_removal_skips_rebuild(self, provider, store):
        _executor(provider, store).apply(Planner(provider, store).plan(_desired(_node("thing", "a", size=1))))
        plan = Planner(provider, store).plan(_desired(_node("thing", "a", size=2)))
        plan.operations[0] = plan.operations[0].model_copy(update={"action": OperationType.REPLACE})
        provider.fail_next("delete", "thing", FatalProviderError("in use"))

        result = _executor(provider, store).apply(plan)

        assert "in use" in result.failed["thing.a"]
        assert result.skipped == []
        assert result.applied == []
        assert store.get("thing.a").attributes == {"size": 1}

    def test_empty_plan(self, provider, store):
        plan = Planner(provider, store).plan(_desired())
        result = _executor(provider, store).apply(plan)
        assert result.success
        assert result.applied == []

    def test_invalid_parallelism(self, provider, store):
        with pytest.raises(ValueError):
            Executor(provider, store, parallelism=0)
