"""Session/progress tracker: applies transitions and carries out their effects."""

from collections.abc import Callable, Iterable
from datetime import date, datetime

import structlog

from sproutling.models.navigation import Screen
from sproutling.models.profile import Level, Profile, Subject, levels_for
from sproutling.models.settings import ParentSettings, SyncStatus
from sproutling.storage.credentials import CredentialStore
from sproutling.storage.errors import StorageError
from sproutling.storage.key_value import KeyValueStore
from sproutling.storage.records import RecordStore
from sproutling.tracker import transitions as tr
from sproutling.tracker.pin import PinVault, is_valid_pin
from sproutling.tracker.ticker import Ticker

logger = structlog.get_logger()

USAGE_SECONDS_KEY = "daily_usage_seconds"
USAGE_DATE_KEY = "usage_date"

NavigationListener = Callable[[Screen], None]


class SessionTracker:
    """Owns navigation, the active profile, level progress and daily usage.

    All mutations go through the pure functions in ``transitions``; this class
    only holds the current state, performs the resulting writes and notifies
    navigation listeners. It is meant to be driven from a single thread (the
    asyncio loop in the server).

    Storage writes are best-effort: a failed write is logged, the in-memory
    state stays authoritative and ``sync_status`` reports the error until the
    next successful write.

    Args:
        records: Durable profile/settings store.
        usage_store: Key-value store for the daily usage counter.
        credentials: Secure store for the parent PIN.
        ticker: Periodic tick source for usage tracking.
        credential_service: Service identifier for credential entries.
        tick_interval_seconds: Seconds between usage ticks.
        flush_interval_ticks: Persist usage every N ticks.
        pin_hash_rounds: bcrypt cost for the PIN hash.
        clock: Returns the current local time.
    """

    def __init__(
        self,
        records: RecordStore,
        usage_store: KeyValueStore,
        credentials: CredentialStore,
        ticker: Ticker,
        credential_service: str = "com.sproutling.app",
        tick_interval_seconds: float = 1.0,
        flush_interval_ticks: int = 10,
        pin_hash_rounds: int = 12,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.records = records
        self.usage_store = usage_store
        self.ticker = ticker
        self.pin_vault = PinVault(credentials, credential_service, rounds=pin_hash_rounds)
        self.tick_interval_seconds = tick_interval_seconds
        self.flush_interval_ticks = flush_interval_ticks
        self._clock = clock
        self._state = tr.TrackerState()
        self._sync_status = SyncStatus()
        self._listeners: list[NavigationListener] = []
        self._tracking_holders = 0

    # State access

    @property
    def state(self) -> tr.TrackerState:
        return self._state

    @property
    def screen(self) -> Screen:
        return self._state.screen

    @property
    def profiles(self) -> list[Profile]:
        return list(self._state.profiles)

    @property
    def current_profile(self) -> Profile | None:
        return self._state.active_profile

    @property
    def settings(self) -> ParentSettings:
        return self._state.settings

    @property
    def sync_status(self) -> SyncStatus:
        return self._sync_status

    @property
    def today_usage_seconds(self) -> int:
        return self._state.usage_seconds

    @property
    def is_time_limit_reached(self) -> bool:
        return self._state.time_limit_reached

    @property
    def is_pin_verified(self) -> bool:
        return self._state.pin_verified

    @property
    def is_tracking(self) -> bool:
        return self.ticker.running

    @property
    def remaining_time_seconds(self) -> int:
        return self._state.remaining_time_seconds

    @property
    def remaining_time_formatted(self) -> str:
        remaining = self.remaining_time_seconds
        minutes, seconds = divmod(remaining, 60)
        if minutes > 0:
            return f"{minutes}m"
        return f"{seconds}s"

    def levels(self, subject: Subject) -> list[Level]:
        return levels_for(self.current_profile, subject)

    def on_navigate(self, listener: NavigationListener) -> None:
        """Register a callback invoked with every new screen."""
        self._listeners.append(listener)

    def remove_listener(self, listener: NavigationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Loading

    def setup(self) -> None:
        """Load settings and profiles from the durable store."""
        self.load_settings()
        self.load_profiles()

    def load_settings(self) -> None:
        """Adopt stored settings; an unreadable store falls back to defaults in memory only."""
        try:
            stored = self.records.load_settings()
        except (StorageError, OSError) as e:
            logger.warning("settings_load_failed", error=str(e))
            self._sync_status = SyncStatus.error(str(e))
            self._apply(tr.adopt_settings(self._state, ParentSettings()), persist=False)
            return
        self._apply(tr.adopt_settings(self._state, stored))

    def load_profiles(self) -> None:
        """Adopt stored profiles.

        When the store cannot be read, a default profile is used in memory and
        nothing is written back until the next explicit change.
        """
        try:
            stored = self.records.list_profiles()
        except (StorageError, OSError) as e:
            logger.warning("profiles_load_failed", error=str(e))
            self._sync_status = SyncStatus.error(str(e))
            self._apply(tr.load_profiles(self._state, [], self._today()), persist=False)
        else:
            self._apply(tr.load_profiles(self._state, stored, self._today()))
        logger.info(
            "profiles_loaded",
            count=len(self._state.profiles),
            active=self.current_profile.profile_id if self.current_profile else None,
        )

    # Profiles

    def select_profile(self, profile_id: str) -> None:
        self._require_loaded()
        self._apply(tr.select_profile(self._state, profile_id, self._today()))

    def create_profile(
        self,
        name: str,
        avatar_index: int,
        background_index: int = 0,
        make_active: bool = False,
    ) -> Profile:
        self._require_loaded()
        self._apply(
            tr.create_profile(
                self._state,
                name=name,
                avatar_index=avatar_index,
                background_index=background_index,
                make_active=make_active,
                today=self._today(),
            )
        )
        created = self._state.profiles[-1]
        logger.info("profile_created", profile_id=created.profile_id, active=make_active)
        return created

    def update_profile(self, profile: Profile) -> None:
        self._require_loaded()
        self._apply(tr.update_profile(self._state, profile))

    def delete_profile(self, profile_id: str) -> bool:
        """Delete a profile.

        Returns:
            False when the id is unknown or it is the last profile.
        """
        self._require_loaded()
        before = len(self._state.profiles)
        self._apply(tr.delete_profile(self._state, profile_id))
        deleted = len(self._state.profiles) < before
        if not deleted:
            logger.info("profile_delete_rejected", profile_id=profile_id)
        return deleted

    def reorder_profiles(self, from_indices: Iterable[int], to_index: int) -> None:
        self._require_loaded()
        self._apply(tr.reorder_profiles(self._state, from_indices, to_index))

    # Navigation

    def navigate_to(self, screen: Screen) -> None:
        self._apply(tr.navigate(self._state, screen))

    def go_home(self) -> None:
        self.navigate_to(Screen.home())

    def go_to_progress(self) -> None:
        self.navigate_to(Screen.progress())

    def go_to_settings(self) -> None:
        self.navigate_to(Screen.settings())

    def go_to_profile_selection(self) -> None:
        self.navigate_to(Screen.profile_selection())

    def go_to_profile_management(self) -> None:
        self.navigate_to(Screen.profile_management())

    def select_subject(self, subject: Subject) -> None:
        self.navigate_to(Screen.subject_selection(subject))

    def start_lesson(self, subject: Subject, level: int) -> None:
        self.navigate_to(Screen.lesson(subject, level))

    def start_ready_check(self, subject: Subject, level: int) -> None:
        self.navigate_to(Screen.ready_check(subject, level))

    # Progress

    def complete_lesson(self, subject: Subject, level: int, stars: int) -> None:
        self._require_loaded()
        self._apply(tr.complete_lesson(self._state, subject, level, stars))
        logger.info("lesson_completed", subject=subject.value, level=level, stars=stars)

    def unlock_next_level(self, subject: Subject, level: int) -> None:
        self._require_loaded()
        self._apply(tr.unlock_next_level(self._state, subject, level))

    # PIN

    def has_pin(self) -> bool:
        return self.pin_vault.has_pin()

    @property
    def requires_pin(self) -> bool:
        return self._state.settings.require_pin

    def set_pin(self, pin: str) -> bool:
        """Store a new PIN and require it; False if malformed or not stored."""
        if not is_valid_pin(pin):
            return False
        if not self.pin_vault.save(pin):
            self._sync_status = SyncStatus.error("PIN could not be stored")
            return False
        self._apply(tr.pin_set(self._state))
        return True

    def verify_pin(self, pin: str) -> bool:
        verified = self.pin_vault.verify(pin)
        if verified:
            self._apply(tr.pin_verified(self._state))
        logger.info("pin_verification", success=verified)
        return verified

    def clear_pin(self) -> None:
        if not self.pin_vault.delete():
            self._sync_status = SyncStatus.error("PIN could not be removed")
        self._apply(tr.pin_cleared(self._state))

    def lock_settings(self) -> None:
        self._apply(tr.lock_settings(self._state))

    # Settings

    def set_time_limit(self, enabled: bool, minutes: int | None = None) -> None:
        self._apply(tr.set_time_limit(self._state, enabled, minutes))
        logger.info(
            "time_limit_changed",
            enabled=enabled,
            minutes=self._state.settings.daily_time_limit_minutes,
        )

    def update_settings(
        self,
        sound_enabled: bool | None = None,
        haptics_enabled: bool | None = None,
    ) -> None:
        changes = {}
        if sound_enabled is not None:
            changes["sound_enabled"] = sound_enabled
        if haptics_enabled is not None:
            changes["haptics_enabled"] = haptics_enabled
        if changes:
            self._apply(tr.update_settings(self._state, **changes))

    # Time tracking

    def start_time_tracking(self) -> None:
        """Load today's usage and (re)start the tick; never stacks tickers."""
        self.ticker.cancel()
        try:
            stored_day = self.usage_store.get(USAGE_DATE_KEY)
            stored_seconds = self.usage_store.get(USAGE_SECONDS_KEY, 0)
        except (StorageError, OSError) as e:
            logger.warning("usage_load_failed", error=str(e))
            stored_day, stored_seconds = None, 0
        self._apply(tr.load_usage(self._state, stored_day, stored_seconds, self._today()))
        self.ticker.start(self._on_tick, self.tick_interval_seconds)
        logger.info("time_tracking_started", usage_seconds=self.today_usage_seconds)

    def stop_time_tracking(self) -> None:
        """Cancel the tick and flush; a counter that was never loaded is left untouched."""
        self.ticker.cancel()
        self._tracking_holders = 0
        self._apply(tr.flush_usage(self._state))
        logger.info("time_tracking_stopped", usage_seconds=self.today_usage_seconds)

    def acquire_tracking(self) -> None:
        """Register one foreground session; the first one starts tracking."""
        if self._tracking_holders == 0 or not self.is_tracking:
            self.start_time_tracking()
        self._tracking_holders += 1

    def release_tracking(self) -> None:
        """Release one foreground session; the last one stops tracking."""
        if self._tracking_holders == 0:
            return
        self._tracking_holders -= 1
        if self._tracking_holders == 0:
            self.stop_time_tracking()

    def reset_daily_usage(self) -> None:
        self._apply(tr.reset_daily_usage(self._state, self._today()))
        logger.info("daily_usage_reset")

    def _on_tick(self) -> None:
        self._apply(tr.tick(self._state, self._today(), self.flush_interval_ticks))

    # Effects

    def _apply(self, transition: tr.Transition, persist: bool = True) -> None:
        self._state = transition.state
        for effect in transition.effects:
            if isinstance(effect, tr.Navigate):
                self._notify(effect.screen)
            elif persist:
                self._persist(effect)

    def _persist(self, effect: tr.Effect) -> None:
        try:
            if isinstance(effect, tr.PersistProfile):
                self.records.save_profile(effect.profile)
            elif isinstance(effect, tr.RemoveProfile):
                self.records.delete_profile(effect.profile_id)
            elif isinstance(effect, tr.PersistSettings):
                self.records.save_settings(effect.settings)
            elif isinstance(effect, tr.PersistUsage):
                self.usage_store.set(USAGE_DATE_KEY, effect.usage.day)
                self.usage_store.set(USAGE_SECONDS_KEY, effect.usage.seconds)
        except (StorageError, OSError) as e:
            logger.warning("persist_failed", effect=effect.kind, error=str(e))
            self._sync_status = SyncStatus.error(str(e))
            return
        if not isinstance(effect, tr.PersistUsage):
            self._mark_synced()

    def _mark_synced(self) -> None:
        now = self._clock()
        self._sync_status = SyncStatus.synced(now)
        self._state = self._state.model_copy(
            update={"settings": self._state.settings.model_copy(update={"last_sync_at": now})}
        )

    def _notify(self, screen: Screen) -> None:
        logger.debug("navigated", screen=screen.kind.value)
        for listener in list(self._listeners):
            try:
                listener(screen)
            except Exception:
                logger.exception("navigation_listener_error", screen=screen.kind.value)

    def _require_loaded(self) -> None:
        if not self._state.profiles_loaded:
            raise RuntimeError("Profiles not loaded")

    def _today(self) -> date:
        return self._clock().date()
