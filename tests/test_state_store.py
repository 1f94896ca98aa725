from __future__ import annotations

import asyncio
import logging

import pytest

from phonestore.exceptions import PendingPhoneError, PhoneNotFoundError, RemoteError, StoreClosedError
from phonestore.models.phone import Phone, PhoneDraft
from phonestore.repository import InMemoryPhoneRepository
from phonestore.state.events import CollectionState, CollectionStatus, Failure, Loading, Success
from phonestore.state.ids import is_temporary_id
from phonestore.state.store import PhoneStore


class ManualRepository:
    """Wraps an in-memory backend; while ``hold`` is set every call waits to be released."""

    def __init__(self, phones: list[Phone] | None = None) -> None:
        self.backend = InMemoryPhoneRepository(phones or [])
        self.hold = False
        self.waiting: list[asyncio.Future[None]] = []

    async def _gate(self) -> None:
        if not self.hold:
            return
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self.waiting.append(fut)
        await fut

    async def wait_for_calls(self, count: int) -> None:
        while len(self.waiting) < count:
            await asyncio.sleep(0)

    async def add(self, draft: PhoneDraft) -> Phone:
        await self._gate()
        return await self.backend.add(draft)

    async def update(self, phone: Phone) -> Phone:
        await self._gate()
        return await self.backend.update(phone)

    async def list(self) -> list[Phone]:
        await self._gate()
        return await self.backend.list()

    async def remove(self, phone_id: str) -> None:
        await self._gate()
        await self.backend.remove(phone_id)


class _ExplodingRepository(InMemoryPhoneRepository):
    async def add(self, draft: PhoneDraft) -> Phone:
        raise RuntimeError("socket closed")


def _catalog() -> list[Phone]:
    return [
        Phone(id="1", brand="A", model="X", price=100),
        Phone(id="2", brand="B", model="Y", price=200.5),
        Phone(id="3", brand="C", model="Z", price=0),
    ]


def _values(phones: tuple[Phone, ...]) -> list[tuple[str, str, float]]:
    return [(p.brand, p.model, p.price) for p in phones]


async def _ready_store(repo: object, observers: list | None = None) -> PhoneStore:
    store = PhoneStore(repo, observers=observers or [])  # type: ignore[arg-type]
    await store.wait_idle()
    return store


@pytest.mark.asyncio
async def test_initial_fetch_goes_loading_then_success() -> None:
    states: list[CollectionState] = []
    repo = InMemoryPhoneRepository(_catalog())

    store = PhoneStore(repo, observers=[states.append])
    assert isinstance(store.state, Loading)
    assert store.is_loading
    assert store.phones == ()

    await store.wait_idle()

    assert [s.status for s in states] == [CollectionStatus.LOADING, CollectionStatus.SUCCESS]
    assert [p.id for p in store.phones] == ["1", "2", "3"]
    assert repo.calls == {"list": 1}


@pytest.mark.asyncio
async def test_fetch_on_start_can_be_disabled() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = PhoneStore(repo, fetch_on_start=False)
    await store.wait_idle()

    assert isinstance(store.state, Loading)
    assert repo.calls == {}


@pytest.mark.asyncio
async def test_fetch_failure_surfaces_failure_without_items() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    repo.fail_next("list", RemoteError("Failed to load phones: 503", status_code=503))

    store = await _ready_store(repo)

    assert isinstance(store.state, Failure)
    assert store.has_error
    assert store.error is not None and store.error.status_code == 503
    assert store.phones == ()

    # Retry recovers.
    await store.fetch()
    assert isinstance(store.state, Success)
    assert len(store.phones) == 3


@pytest.mark.asyncio
async def test_fetch_replaces_local_state_wholesale() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)

    await repo.remove("2")
    task = store.fetch()
    assert isinstance(store.state, Loading)
    await task

    assert [p.id for p in store.phones] == ["1", "3"]


@pytest.mark.asyncio
async def test_add_is_visible_before_the_store_confirms() -> None:
    repo = ManualRepository(_catalog())
    store = await _ready_store(repo)
    before = store.phones

    repo.hold = True
    task = store.add(PhoneDraft(brand="D", model="W", price=50))

    assert isinstance(store.state, Success)
    assert len(store.phones) == len(before) + 1
    provisional = store.phones[-1]
    assert is_temporary_id(provisional.id)
    assert provisional.id not in {p.id for p in before}
    assert _values((provisional,)) == [("D", "W", 50.0)]

    await repo.wait_for_calls(1)
    repo.waiting[0].set_result(None)
    await task

    confirmed = store.phones[-1]
    assert not is_temporary_id(confirmed.id)
    assert _values((confirmed,)) == [("D", "W", 50.0)]
    assert [p.id for p in repo.backend.snapshot()][-1] == confirmed.id


@pytest.mark.asyncio
async def test_add_keeps_position_of_provisional_entry() -> None:
    repo = ManualRepository(_catalog())
    store = await _ready_store(repo)

    repo.hold = True
    first = store.add(PhoneDraft(brand="D", model="1", price=1))
    second = store.add(PhoneDraft(brand="E", model="2", price=2))
    await repo.wait_for_calls(2)

    # Second add resolves first; positions follow call order.
    repo.waiting[1].set_result(None)
    await second
    repo.waiting[0].set_result(None)
    await first

    assert _values(store.phones)[-2:] == [("D", "1", 1.0), ("E", "2", 2.0)]
    assert not any(is_temporary_id(p.id) for p in store.phones)


@pytest.mark.asyncio
async def test_add_failure_drops_provisional_entry() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)
    repo.fail_next("add")

    task = store.add(PhoneDraft(brand="D", model="W", price=50))
    assert len(store.phones) == 4
    await task

    assert isinstance(store.state, Failure)
    assert [p.id for p in store.phones] == ["1", "2", "3"]
    assert not any(is_temporary_id(p.id) for p in store.phones)

    await store.fetch()
    assert isinstance(store.state, Success)
    assert [p.id for p in store.phones] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_add_accepts_a_phone_and_ignores_its_id() -> None:
    repo = InMemoryPhoneRepository()
    store = await _ready_store(repo)

    await store.add(Phone(id="client-side", brand="A", model="B", price=1))

    assert len(store.phones) == 1
    assert store.phones[0].id != "client-side"
    assert repo.snapshot()[0].id == store.phones[0].id


@pytest.mark.asyncio
async def test_add_while_loading_operates_on_empty_list() -> None:
    repo = ManualRepository(_catalog())
    repo.hold = True
    store = PhoneStore(repo)  # type: ignore[arg-type]
    await repo.wait_for_calls(1)

    store.add(PhoneDraft(brand="D", model="W", price=5))

    assert isinstance(store.state, Success)
    assert len(store.phones) == 1
    assert is_temporary_id(store.phones[0].id)

    for fut in repo.waiting:
        fut.set_result(None)
    repo.hold = False
    await store.wait_idle()


@pytest.mark.asyncio
async def test_add_confirmed_during_fetch_does_not_repeat_loading() -> None:
    states: list[CollectionState] = []
    repo = ManualRepository(_catalog())
    store = await _ready_store(repo, observers=[states.append])
    states.clear()

    repo.hold = True
    added = store.add(PhoneDraft(brand="D", model="W", price=5))
    fetched = store.fetch()
    await repo.wait_for_calls(2)

    repo.waiting[0].set_result(None)
    await added
    assert [s.status for s in states] == [CollectionStatus.SUCCESS, CollectionStatus.LOADING]

    repo.waiting[1].set_result(None)
    await fetched
    assert [s.status for s in states] == [
        CollectionStatus.SUCCESS,
        CollectionStatus.LOADING,
        CollectionStatus.SUCCESS,
    ]
    assert _values(store.phones)[-1] == ("D", "W", 5.0)
    assert not any(is_temporary_id(p.id) for p in store.phones)


@pytest.mark.asyncio
async def test_pending_phone_edits_are_refused_while_add_succeeds() -> None:
    states: list[CollectionState] = []
    repo = ManualRepository(_catalog())
    store = await _ready_store(repo, observers=[states.append])

    repo.hold = True
    task = store.add(PhoneDraft(brand="D", model="W", price=50))
    provisional = store.phones[-1]
    before = store.state
    states.clear()

    with pytest.raises(PendingPhoneError) as exc_info:
        store.update(provisional.with_changes(model="Edited"))
    assert exc_info.value.phone_id == provisional.id
    with pytest.raises(PendingPhoneError):
        store.remove(provisional.id)

    assert store.state is before
    assert states == []
    assert store.pending == 1

    await repo.wait_for_calls(1)
    repo.waiting[0].set_result(None)
    await task
    repo.hold = False

    confirmed = store.phones[-1]
    assert not is_temporary_id(confirmed.id)
    assert not any(is_temporary_id(p.id) for p in repo.backend.snapshot())
    assert set(repo.backend.calls) == {"list", "add"}

    # The confirmed id is editable.
    await store.update(confirmed.with_changes(model="Edited"))
    local = _values(store.phones)
    await store.fetch()

    assert _values(store.phones) == local
    assert [p.id for p in store.phones] == [p.id for p in repo.backend.snapshot()]


@pytest.mark.asyncio
async def test_pending_phone_edits_are_refused_while_add_fails() -> None:
    repo = ManualRepository(_catalog())
    store = await _ready_store(repo)
    repo.backend.fail_next("add")

    repo.hold = True
    task = store.add(PhoneDraft(brand="D", model="W", price=50))
    provisional = store.phones[-1]

    with pytest.raises(PendingPhoneError):
        store.remove(provisional.id)
    with pytest.raises(PendingPhoneError):
        store.update(provisional.with_changes(price=1))

    await repo.wait_for_calls(1)
    repo.waiting[0].set_result(None)
    await task
    repo.hold = False

    assert isinstance(store.state, Failure)
    local = [p.id for p in store.phones]
    assert local == ["1", "2", "3"]
    assert "update" not in repo.backend.calls
    assert "remove" not in repo.backend.calls

    await store.fetch()

    assert [p.id for p in store.phones] == local
    assert not any(is_temporary_id(p.id) for p in repo.backend.snapshot())


@pytest.mark.asyncio
async def test_update_failure_restores_original_then_refetch_shows_remote() -> None:
    repo = InMemoryPhoneRepository([Phone(id="1", brand="A", model="X", price=100)])
    store = await _ready_store(repo)
    repo.fail_next("update")

    task = store.update(Phone(id="1", brand="A", model="Y", price=100))
    assert store.phones[0].model == "Y"

    await task
    assert isinstance(store.state, Failure)
    assert store.phones[0].model == "X"

    await store.fetch()
    assert isinstance(store.state, Success)
    assert store.phones[0].model == "X"


@pytest.mark.asyncio
async def test_update_failure_restores_every_attribute_in_place() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)
    original = store.phones[1]
    repo.fail_next("update")

    await store.update(original.with_changes(brand="Q", model="Q", price=1))

    assert [p.id for p in store.phones] == ["1", "2", "3"]
    assert store.phones[1].same_values(original)
    assert isinstance(store.state, Failure)
    assert store.state.items == store.phones


@pytest.mark.asyncio
async def test_update_success_keeps_optimistic_value() -> None:
    states: list[CollectionState] = []
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo, observers=[states.append])
    states.clear()

    await store.update(Phone(id="2", brand="B", model="Y2", price=199))

    assert isinstance(store.state, Success)
    assert _values(store.phones)[1] == ("B", "Y2", 199.0)
    assert repo.snapshot()[1].model == "Y2"
    assert len(states) == 2


@pytest.mark.asyncio
async def test_update_unknown_id_raises_without_touching_state() -> None:
    states: list[CollectionState] = []
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo, observers=[states.append])
    states.clear()

    with pytest.raises(PhoneNotFoundError) as exc_info:
        store.update(Phone(id="missing", brand="A", model="B", price=1))

    assert exc_info.value.phone_id == "missing"
    assert states == []
    assert "update" not in repo.calls


@pytest.mark.asyncio
async def test_remove_failure_restores_full_list_in_order() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)
    before = store.phones
    repo.fail_next("remove")

    task = store.remove("2")
    assert [p.id for p in store.phones] == ["1", "3"]
    await task

    assert isinstance(store.state, Failure)
    assert [p.id for p in store.phones] == ["1", "2", "3"]
    assert all(a.same_values(b) for a, b in zip(store.phones, before, strict=True))


@pytest.mark.asyncio
async def test_remove_success() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)

    await store.remove("1")

    assert isinstance(store.state, Success)
    assert [p.id for p in store.phones] == ["2", "3"]
    assert [p.id for p in repo.snapshot()] == ["2", "3"]


@pytest.mark.asyncio
async def test_mutations_continue_from_rolled_back_items() -> None:
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)
    repo.fail_next("remove")
    await store.remove("1")
    assert isinstance(store.state, Failure)

    await store.remove("3")

    assert isinstance(store.state, Success)
    assert [p.id for p in store.phones] == ["1", "2"]


@pytest.mark.asyncio
async def test_successful_sequence_matches_pure_application_in_any_completion_order() -> None:
    repo = ManualRepository(_catalog())
    store = await _ready_store(repo)

    repo.hold = True
    store.add(PhoneDraft(brand="D", model="1", price=10))
    store.update(Phone(id="2", brand="B", model="Y-new", price=150))
    store.remove("3")
    store.add(PhoneDraft(brand="E", model="2", price=20))
    await repo.wait_for_calls(4)

    for fut in reversed(repo.waiting):
        fut.set_result(None)
        await asyncio.sleep(0)
    await store.wait_idle()

    assert isinstance(store.state, Success)
    assert _values(store.phones) == [
        ("A", "X", 100.0),
        ("B", "Y-new", 150.0),
        ("D", "1", 10.0),
        ("E", "2", 20.0),
    ]
    assert not any(is_temporary_id(p.id) for p in store.phones)
    assert {p.id for p in store.phones} == {p.id for p in repo.backend.snapshot()}


@pytest.mark.asyncio
async def test_every_operation_notifies_twice_in_order() -> None:
    states: list[CollectionState] = []
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo, observers=[states.append])
    states.clear()

    await store.add(PhoneDraft(brand="D", model="W", price=1))
    await store.remove("1")
    repo.fail_next("update")
    await store.update(Phone(id="2", brand="B", model="nope", price=1))

    assert [s.status for s in states] == [
        CollectionStatus.SUCCESS,
        CollectionStatus.SUCCESS,
        CollectionStatus.SUCCESS,
        CollectionStatus.SUCCESS,
        CollectionStatus.SUCCESS,
        CollectionStatus.FAILURE,
    ]
    assert is_temporary_id(states[0].items[-1].id)
    assert not is_temporary_id(states[1].items[-1].id)


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications() -> None:
    states: list[CollectionState] = []
    repo = InMemoryPhoneRepository(_catalog())
    store = await _ready_store(repo)

    unsubscribe = store.subscribe(states.append)
    await store.remove("1")
    unsubscribe()
    await store.remove("2")

    assert len(states) == 2


@pytest.mark.asyncio
async def test_failing_observer_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    states: list[CollectionState] = []

    def broken(_state: CollectionState) -> None:
        raise ValueError("boom")

    repo = InMemoryPhoneRepository(_catalog())
    with caplog.at_level(logging.WARNING, logger="phonestore.state.store"):
        store = await _ready_store(repo, observers=[broken, states.append])

    assert len(states) == 2
    assert isinstance(store.state, Success)
    assert "State observer" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_repository_exception_becomes_remote_error() -> None:
    repo = _ExplodingRepository(_catalog())
    store = await _ready_store(repo)

    await store.add(PhoneDraft(brand="D", model="W", price=1))

    assert isinstance(store.state, Failure)
    assert isinstance(store.state.error, RemoteError)
    assert isinstance(store.state.error.__cause__, RuntimeError)
    assert len(store.phones) == 3


@pytest.mark.asyncio
async def test_aclose_waits_for_pending_and_rejects_new_operations() -> None:
    repo = InMemoryPhoneRepository(_catalog(), delay=0.01)
    states: list[CollectionState] = []

    async with PhoneStore(repo, observers=[states.append]) as store:
        await store.wait_idle()
        store.remove("1")
        assert store.pending >= 1

    assert store.closed
    assert store.pending == 0
    assert [p.id for p in repo.snapshot()] == ["2", "3"]
    with pytest.raises(StoreClosedError):
        store.fetch()
