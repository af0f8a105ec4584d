"""Settings Resolver.

Merges an institution's saved override for a category with the category's
defaults. Every overridable field goes through the same ``resolve_field``
rule: the override wins when present, the default applies otherwise.
"""

import threading
from typing import Callable, Dict, Mapping, Optional, Tuple, TypeVar

from ..domain.models import (
    EffectiveSetting,
    InstitutionNotificationSetting,
    NotificationCategory,
    Schedule,
)
from ..logging import get_logger

logger = get_logger(__name__, component="settings")

T = TypeVar("T")

SettingsLoader = Callable[[str, str], Optional[InstitutionNotificationSetting]]

DEFAULT_SCHEDULE = Schedule()


class UnknownCategory(LookupError):
    """Raised when a category id has no static definition."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Unknown notification category: '{category_id}'")


def resolve_field(override: Optional[T], default: T) -> T:
    """Return the override when present, otherwise the default."""
    return default if override is None else override


class SettingsResolver:
    """Resolve effective settings for (institution, category) pairs.

    Saved overrides are read through ``loader`` once per pair and kept for the
    life of the resolver, which the pipeline scopes to a single run.

    Args:
        catalog: Mapping of category id to category definition
        loader: Callable returning the saved override or None
    """

    def __init__(self, catalog: Mapping[str, NotificationCategory], loader: SettingsLoader):
        self.catalog = catalog
        self._loader = loader
        self._snapshot: Dict[Tuple[str, str], Optional[InstitutionNotificationSetting]] = {}
        self._lock = threading.Lock()

    def resolve(self, institution_id: str, category_id: str) -> EffectiveSetting:
        """Merge the saved override for the pair over the category defaults.

        Raises:
            UnknownCategory: If ``category_id`` is not in the catalog
        """
        category = self.catalog.get(category_id)
        if category is None:
            raise UnknownCategory(category_id)

        saved = self._saved_setting(institution_id, category_id)
        if saved is None:
            saved = InstitutionNotificationSetting(
                institution_id=institution_id, category_id=category_id
            )

        channels = resolve_field(
            tuple(saved.channels) if saved.channels is not None else None,
            category.default_channels,
        )
        schedule = Schedule(
            time_of_day=resolve_field(saved.schedule_time, DEFAULT_SCHEDULE.time_of_day),
            days_of_week=resolve_field(
                tuple(saved.schedule_days) if saved.schedule_days is not None else None,
                DEFAULT_SCHEDULE.days_of_week,
            ),
        )

        return EffectiveSetting(
            institution_id=institution_id,
            category=category,
            enabled=resolve_field(saved.is_enabled, True),
            channels=channels,
            schedule=schedule,
            template=resolve_field(saved.custom_template, category.default_template),
        )

    def _saved_setting(
        self, institution_id: str, category_id: str
    ) -> Optional[InstitutionNotificationSetting]:
        key = (institution_id, category_id)
        with self._lock:
            if key in self._snapshot:
                return self._snapshot[key]

        saved = self._loader(institution_id, category_id)
        logger.debug(
            "Loaded notification setting",
            extra={
                "event": "settings.loaded",
                "institution_id": institution_id,
                "category_id": category_id,
                "has_override": saved is not None,
            },
        )

        with self._lock:
            return self._snapshot.setdefault(key, saved)
