import logging

from .cost_rate import COST_RATE_SETTINGS_KEY, DEFAULT_COST_RATE_SETTINGS, sanitize_cost_rate_settings
from .models import db, AppSetting

logger = logging.getLogger(__name__)


class CostRateSettingsStore:
    """
    Cost-rate thresholds persisted as a JSON blob in the app_setting table.

    Every value coming out of the store is sanitized, so callers can rely on
    target <= warn <= danger.
    """

    def __init__(self, key=COST_RATE_SETTINGS_KEY):
        self.key = key

    def load(self):
        row = db.session.get(AppSetting, self.key)
        if row is None:
            return dict(DEFAULT_COST_RATE_SETTINGS)

        try:
            data = row.get_value()
        except ValueError as e:
            logger.warning("Stored cost rate settings are not valid JSON, using defaults: %s", e)
            return dict(DEFAULT_COST_RATE_SETTINGS)

        if not isinstance(data, dict):
            logger.warning("Stored cost rate settings are not an object, using defaults")
            return dict(DEFAULT_COST_RATE_SETTINGS)

        return sanitize_cost_rate_settings(data)

    def save(self, settings):
        row = db.session.get(AppSetting, self.key)
        if row is None:
            row = AppSetting(key=self.key)
            db.session.add(row)
        row.set_value(settings)
        db.session.commit()

    def update(self, changes):
        merged = self.load()
        merged.update({
            k: v for k, v in (changes or {}).items()
            if k in DEFAULT_COST_RATE_SETTINGS and v is not None
        })
        settings = sanitize_cost_rate_settings(merged)
        self.save(settings)
        return settings

    def reset(self):
        settings = dict(DEFAULT_COST_RATE_SETTINGS)
        self.save(settings)
        return settings
