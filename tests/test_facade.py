import threading
from dataclasses import dataclass

import pytest

from silhouette import LockError, NotFoundError, ResolutionError, facade


@dataclass
class TestDependency:
    __test__ = False

    value: str


@dataclass
class FlushableDependency:
    value: str


@pytest.fixture(autouse=True)
def _reset_global_container():
    facade.recover()
    facade.flush()
    yield
    facade.recover()
    facade.flush()


def test_global_container_is_created_once():
    assert facade._get_instance() is facade._get_instance()


def test_can_retrieve_a_registered_binding():
    facade.bind(TestDependency, lambda _: TestDependency("Hello, world!"))

    assert facade.resolve(TestDependency).value == "Hello, world!"


def test_can_retrieve_a_registered_singleton():
    facade.singleton(TestDependency, lambda _: TestDependency("Hello, world!"))

    assert facade.resolve(TestDependency).value == "Hello, world!"


def test_registering_a_binding_clears_previous_singleton():
    facade.singleton(TestDependency, lambda _: TestDependency("Hello, world!"))
    facade.bind(TestDependency, lambda _: TestDependency("Goodbye, world!"))

    assert facade.resolve(TestDependency) == TestDependency("Goodbye, world!")


def test_returns_singleton_over_binding():
    facade.bind(TestDependency, lambda _: TestDependency("Hello, world!"))
    facade.singleton(TestDependency, lambda _: TestDependency("Goodbye, world!"))

    assert facade.resolve(TestDependency).value == "Goodbye, world!"


def test_can_retrieve_a_registered_scoped_binding_until_forgotten():
    facade.scoped(FlushableDependency, lambda _: FlushableDependency("Hello, world!"))
    assert facade.resolve(FlushableDependency) == FlushableDependency("Hello, world!")

    facade.forget_scoped_instances()

    with pytest.raises(NotFoundError):
        facade.resolve(FlushableDependency)


def test_conditional_registrations_are_noops_when_already_registered():
    facade.bind(TestDependency, lambda _: TestDependency("bound"))
    facade.bind_if(TestDependency, lambda _: TestDependency("ignored"))
    assert facade.resolve(TestDependency).value == "bound"

    facade.singleton_if(TestDependency, lambda _: TestDependency("singleton"))
    facade.singleton_if(TestDependency, lambda _: TestDependency("ignored"))
    assert facade.resolve(TestDependency).value == "singleton"

    facade.scoped_if(FlushableDependency, lambda _: FlushableDependency("scoped"))
    facade.scoped_if(FlushableDependency, lambda _: FlushableDependency("ignored"))
    assert facade.resolve(FlushableDependency).value == "scoped"


def test_flush_forgets_everything():
    facade.bind(TestDependency, lambda _: TestDependency("bound"))
    facade.scoped(FlushableDependency, lambda _: FlushableDependency("scoped"))

    facade.flush()

    with pytest.raises(NotFoundError):
        facade.resolve(TestDependency)
    with pytest.raises(NotFoundError):
        facade.resolve(FlushableDependency)


def test_not_found_is_a_resolution_error_not_a_lock_error():
    with pytest.raises(ResolutionError) as ctx:
        facade.resolve(TestDependency)

    assert not isinstance(ctx.value, LockError)


def test_factory_resolving_through_facade_during_registration_raises_lock_error():
    facade.bind(FlushableDependency, lambda _: FlushableDependency("inner"))

    def reentrant(_):
        return TestDependency(facade.resolve(FlushableDependency).value)

    with pytest.raises(LockError):
        facade.singleton(TestDependency, reentrant)

    # The failed write section poisoned the lock.
    with pytest.raises(LockError):
        facade.resolve(FlushableDependency)

    facade.recover()
    assert facade.resolve(FlushableDependency).value == "inner"


def test_factory_resolving_through_passed_container_is_fine():
    facade.bind(FlushableDependency, lambda _: FlushableDependency("inner"))
    facade.singleton(TestDependency, lambda c: TestDependency(c.resolve(FlushableDependency).value))

    assert facade.resolve(TestDependency).value == "inner"


def test_reentrant_resolve_raises_lock_error_without_poisoning():
    facade.bind(FlushableDependency, lambda _: FlushableDependency("inner"))
    facade.bind(TestDependency, lambda _: TestDependency(facade.resolve(FlushableDependency).value))

    with pytest.raises(LockError):
        facade.resolve(TestDependency)

    assert facade.resolve(FlushableDependency).value == "inner"


def test_failing_singleton_factory_propagates_unchanged_and_poisons():
    class BrokenFactoryError(Exception): ...

    def broken(_):
        raise BrokenFactoryError("boom")

    with pytest.raises(BrokenFactoryError):
        facade.singleton(TestDependency, broken)

    with pytest.raises(LockError):
        facade.bind(TestDependency, lambda _: TestDependency("after"))

    facade.recover()
    facade.bind(TestDependency, lambda _: TestDependency("after"))
    assert facade.resolve(TestDependency).value == "after"


def test_concurrent_readers_observe_same_singleton():
    facade.singleton(TestDependency, lambda _: TestDependency("shared"))
    results = []
    errors = []
    lock = threading.Lock()

    def reader():
        try:
            for _ in range(50):
                value = facade.resolve(TestDependency)
                with lock:
                    results.append(value)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=reader) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert errors == []
    assert len(results) == 400
    assert all(r == TestDependency("shared") for r in results)


def test_registration_is_serialized_with_readers():
    facade.singleton(TestDependency, lambda _: TestDependency("old"))
    started = threading.Event()
    proceed = threading.Event()
    results = []

    def slow(_):
        started.set()
        proceed.wait(5)
        return TestDependency("new")

    writer = threading.Thread(target=facade.singleton, args=(TestDependency, slow))
    writer.start()
    assert started.wait(5)

    reader = threading.Thread(target=lambda: results.append(facade.resolve(TestDependency).value))
    reader.start()
    reader.join(0.1)

    assert reader.is_alive(), "reader must wait for the writer"
    assert results == []

    proceed.set()
    writer.join(5)
    reader.join(5)

    assert results == ["new"]


@pytest.mark.parametrize(
    "register",
    [
        lambda: facade.bind("db", lambda _: TestDependency("db")),
        lambda: facade.bind_if(lambda _: TestDependency("unannotated")),
        lambda: facade.singleton(lambda _: TestDependency("unannotated")),
        lambda: facade.singleton_if(TestDependency, TestDependency("not callable")),
        lambda: facade.scoped(42, lambda _: TestDependency("int")),
        lambda: facade.scoped_if("db", lambda _: TestDependency("db")),
    ],
)
def test_invalid_registration_arguments_do_not_poison_lock(register):
    with pytest.raises(TypeError):
        register()

    facade.bind(TestDependency, lambda _: TestDependency("after"))
    assert facade.resolve(TestDependency).value == "after"


def test_invalid_resolve_token_does_not_poison_lock():
    with pytest.raises(TypeError):
        facade.resolve("db")

    facade.bind(TestDependency, lambda _: TestDependency("after"))
    assert facade.resolve(TestDependency).value == "after"
