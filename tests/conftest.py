"""
Shared fixtures for the engine test suite.
"""
from dataclasses import dataclass
from typing import List, Optional

import pytest

from config import AppConfig
from engine.balancing_executor import BalancingExecutor
from engine.cache import ValidationCache
from engine.conflict_resolver import ConflictResolver
from engine.snapshot_manager import SnapshotManager
from engine.suggestion_validator import SuggestionValidator
from models.employee import Employee, Unavailability
from models.shift import Shift
from models.state import ScheduleState
from models.store import Store

from tests.helpers import MONDAY, InMemoryEntityStore, make_store


@pytest.fixture
def app_config() -> AppConfig:
    """Default configuration, unaffected by SHIFT_ENGINE_* variables."""
    return AppConfig()


@pytest.fixture
def clock():
    return lambda: MONDAY


@dataclass
class World:
    """Components wired around one state, the way ShiftEngine wires them."""
    state: ScheduleState
    entity_store: InMemoryEntityStore
    cache: ValidationCache
    validator: SuggestionValidator
    executor: BalancingExecutor
    resolver: ConflictResolver
    snapshots: SnapshotManager


@pytest.fixture
def build_world(app_config, clock):
    """Factory building a World from entity collections."""

    def build(employees: List[Employee],
              shifts: List[Shift],
              stores: Optional[List[Store]] = None,
              unavailabilities: Optional[List[Unavailability]] = None,
              with_callbacks: bool = True) -> World:
        state = ScheduleState.from_collections(
            employees, stores or [make_store()], shifts, unavailabilities
        )
        entity_store = InMemoryEntityStore(shifts)
        callbacks = entity_store.callbacks() if with_callbacks else None
        cache = ValidationCache(app_config.validation.cache_size)
        validator = SuggestionValidator(state, cache=cache, config=app_config)
        return World(
            state=state,
            entity_store=entity_store,
            cache=cache,
            validator=validator,
            executor=BalancingExecutor(
                state, validator, callbacks=callbacks, config=app_config, clock=clock
            ),
            resolver=ConflictResolver(state, callbacks=callbacks, cache=cache, config=app_config),
            snapshots=SnapshotManager(state, callbacks=callbacks, cache=cache, config=app_config),
        )

    return build
