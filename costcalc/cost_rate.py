import math
from collections.abc import Mapping

from .calculator import to_safe_number

COST_RATE_SETTINGS_KEY = 'costCalcSettings'

DEFAULT_COST_RATE_SETTINGS = {
    'target_cost_rate': 30.0,
    'warn_cost_rate': 35.0,
    'danger_cost_rate': 40.0,
}

TONE_NONE = 'none'
TONE_GOOD = 'good'
TONE_WARN = 'warn'
TONE_DANGER = 'danger'

LABEL_GOOD = 'good'
LABEL_CAUTION = 'caution'
LABEL_HIGH = 'high'


def clamp_percent(value):
    value = to_safe_number(value)
    if value < 0:
        return 0.0
    if value > 100:
        return 100.0
    return value


def sanitize_cost_rate_settings(value=None):
    """
    Return complete, ordered cost-rate thresholds from a partial or invalid set.

    Missing thresholds take their default, every threshold is clamped to
    [0, 100] and the order target <= warn <= danger is restored by raising
    warn and danger where needed. Nothing is ever rejected.
    """
    if not isinstance(value, Mapping):
        value = {}

    def pick(key):
        raw = value.get(key)
        return clamp_percent(DEFAULT_COST_RATE_SETTINGS[key] if raw is None else raw)

    target = pick('target_cost_rate')
    warn = max(target, pick('warn_cost_rate'))
    danger = max(warn, pick('danger_cost_rate'))

    return {
        'target_cost_rate': target,
        'warn_cost_rate': warn,
        'danger_cost_rate': danger,
    }


def _finite_or_none(value):
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def round_rate(rate):
    """Round half up to one decimal place."""
    return math.floor(rate * 10 + 0.5) / 10


def evaluate_cost_rate(cost_rate, sales_price, settings):
    """
    Classify a menu cost rate against the configured thresholds.

    Menus without a positive sales price (or with an unusable cost rate)
    cannot be rated and get the 'none' tone with no display values.
    """
    numeric_sales_price = _finite_or_none(sales_price)
    # An absent or blank cost rate counts as 0
    if cost_rate is None or (isinstance(cost_rate, str) and not cost_rate.strip()):
        cost_rate = 0.0
    numeric_cost_rate = _finite_or_none(cost_rate)

    if numeric_sales_price is None or numeric_sales_price <= 0 or numeric_cost_rate is None:
        return {
            'display_rate': None,
            'label': None,
            'tone': TONE_NONE,
            'over_warn_threshold': False,
        }

    rounded_rate = round_rate(numeric_cost_rate) or 0.0
    display_rate = f"{rounded_rate:.1f}"

    # danger >= warn >= target is guaranteed by sanitize_cost_rate_settings
    if rounded_rate >= settings['danger_cost_rate']:
        return {
            'display_rate': display_rate,
            'label': LABEL_HIGH,
            'tone': TONE_DANGER,
            'over_warn_threshold': True,
        }

    if rounded_rate > settings['target_cost_rate']:
        return {
            'display_rate': display_rate,
            'label': LABEL_CAUTION,
            'tone': TONE_WARN,
            'over_warn_threshold': rounded_rate >= settings['warn_cost_rate'],
        }

    return {
        'display_rate': display_rate,
        'label': LABEL_GOOD,
        'tone': TONE_GOOD,
        'over_warn_threshold': False,
    }
