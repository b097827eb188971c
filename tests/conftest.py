"""Shared fixtures: temporary SQLite database, store, broadcaster and services."""

import json
import random
from decimal import Decimal

import pytest

from mixer.core.config import Settings
from mixer.db import MixerStore, close_db, create_engine, create_session_factory, init_db
from mixer.integrations import build_integrations
from mixer.models import PrivacyLevel, Transaction, TransactionStatus
from mixer.services import EventBroadcaster, MixingService, Observer, StepActions, StepScheduler
from mixer.services.pipeline import PIPELINE
from mixer.utils.helpers import generate_id, utc_now

USER = "0x0123user"
RECIPIENT = "0x0456recipient"


class RecordingObserver(Observer):
    """Observer that keeps every delivered event."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[dict] = []

    def deliver(self, message: str) -> None:
        self.events.append(json.loads(message))


class SpyScheduler:
    """Records start requests without running anything."""

    def __init__(self) -> None:
        self.starts: list[tuple[str, bool]] = []

    def start(self, transaction_id: str, *, resume: bool = False) -> None:
        self.starts.append((transaction_id, resume))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'mixer.db'}",
        step_duration_scale=0,
        simulated_failure_rate=0,
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def store(engine) -> MixerStore:
    return MixerStore(create_session_factory(engine))


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster()


@pytest.fixture
def recorder(broadcaster) -> RecordingObserver:
    observer = RecordingObserver()
    broadcaster.register(observer)
    return observer


@pytest.fixture
def integrations(settings):
    return build_integrations(settings, rng=random.Random(7))


@pytest.fixture
async def scheduler(store, broadcaster, integrations, settings):
    scheduler = StepScheduler(
        store,
        broadcaster,
        StepActions(integrations, settings.sats_per_token_unit, rng=random.Random(7)),
        duration_scale=settings.step_duration_scale,
    )
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def spy_scheduler() -> SpyScheduler:
    return SpyScheduler()


@pytest.fixture
def service(store, spy_scheduler, broadcaster, integrations, settings) -> MixingService:
    return MixingService(store, spy_scheduler, broadcaster, integrations.lightning, settings)


@pytest.fixture
def deposit(service):
    """Initiate a deposit with sensible defaults."""

    async def _deposit(**overrides):
        params = {
            "user_address": USER,
            "token": "STRK",
            "amount": Decimal("1000"),
            "recipient": RECIPIENT,
            "privacy_settings": {"privacyLevel": "medium"},
        }
        params.update(overrides)
        return await service.initiate(**params)

    return _deposit


@pytest.fixture
def make_transaction(store):
    """Insert a transaction directly through the store."""

    async def _make(**overrides) -> Transaction:
        address = overrides.pop("depositor", USER)
        await store.touch_user(address)
        fields = {
            "id": generate_id("tx"),
            "depositor": address,
            "recipient": RECIPIENT,
            "token_symbol": "STRK",
            "gross_amount": "100",
            "amount": "100",
            "fee": "0",
            "payment_handle": f"lnbc100000000n1{generate_id()}",
            "status": TransactionStatus.PENDING,
            "privacy_level": PrivacyLevel.LOW,
            "privacy_settings": {"privacyLevel": "low"},
            "created_at": utc_now(),
        }
        fields.update(overrides)
        return await store.create_transaction(
            Transaction(**fields), [(step.name, step.description) for step in PIPELINE]
        )

    return _make
