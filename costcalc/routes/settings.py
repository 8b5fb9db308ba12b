from flask import Blueprint, jsonify, current_app, g
from flask_babel import gettext as _

from ..cost_rate import DEFAULT_COST_RATE_SETTINGS
from .utils import request_data, log_audit, reset_all_data, current_cost_rate_settings
from ..models import db

settings_blueprint = Blueprint('settings', __name__)


def settings_store():
    return current_app.extensions['cost_rate_settings_store']


def publish_settings(settings):
    g.cost_rate_settings = settings
    return jsonify({'settings': settings, 'defaults': DEFAULT_COST_RATE_SETTINGS})

# ----------------------------
# Cost rate thresholds
# ----------------------------
@settings_blueprint.route('/settings/cost_rate')
def cost_rate_settings():
    return jsonify({
        'settings': current_cost_rate_settings(),
        'defaults': DEFAULT_COST_RATE_SETTINGS
    })

@settings_blueprint.route('/settings/cost_rate', methods=['POST'])
def update_cost_rate_settings():
    data = request_data()
    # Blank form fields keep the current value
    changes = {
        key: data.get(key) for key in DEFAULT_COST_RATE_SETTINGS
        if key in data and data.get(key) != ''
    }

    settings = settings_store().update(changes)
    log_audit("UPDATE", "Settings", None,
              f"target {settings['target_cost_rate']}, warn {settings['warn_cost_rate']}, danger {settings['danger_cost_rate']}")
    db.session.commit()
    return publish_settings(settings)

@settings_blueprint.route('/settings/cost_rate/reset', methods=['POST'])
def reset_cost_rate_settings():
    settings = settings_store().reset()
    log_audit("RESET", "Settings", None, "Cost rate thresholds reset to defaults")
    db.session.commit()
    return publish_settings(settings)

@settings_blueprint.route('/settings/reset_data', methods=['POST'])
def reset_data():
    """Remove all materials, menus and recipe lines. Thresholds are kept."""
    try:
        counts = reset_all_data()
    except Exception as e:
        current_app.logger.error("Data reset failed: %s", e)
        return jsonify({'error': _("Error resetting data")}), 500

    current_app.logger.info("All data removed: %s", counts)
    return jsonify({'message': _("All data has been removed"), 'removed': counts})
