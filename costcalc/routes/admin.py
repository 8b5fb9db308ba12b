"""
Recipe unit migration and audit trail.

Recipe lines used to be entered in kg or L. Quantities are now kept in the
base units (g, ml) and only converted for display.
"""

from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _

from ..calculator import SCALED_UNITS
from ..models import db, AuditLog, Menu, Recipe
from .utils import log_audit, recalculate_menu, base_unit_for

admin_blueprint = Blueprint('admin', __name__)


def legacy_recipe_lines():
    lines = []
    for recipe in Recipe.query.order_by(Recipe.id).all():
        if (recipe.usage_unit or '').strip().lower() in SCALED_UNITS:
            lines.append(recipe)
    return lines


@admin_blueprint.route('/admin/normalize_recipe_units', methods=['GET', 'POST'])
def normalize_recipe_units():
    """
    GET lists the recipe lines still in kg / L.
    POST rewrites them as g / ml (x1000) and re-costs the affected menus.
    """
    lines = legacy_recipe_lines()

    if request.method == 'GET':
        return jsonify({
            'recipes_to_fix': [recipe.to_dict() for recipe in lines],
            'total_fixes_needed': len(lines)
        })

    fixed = []
    try:
        for recipe in lines:
            factor = SCALED_UNITS[recipe.usage_unit.strip().lower()]
            before = f"{recipe.usage_amount}{recipe.usage_unit}"
            recipe.usage_amount = recipe.usage_amount * factor
            recipe.usage_unit = base_unit_for(recipe.usage_unit)
            fixed.append({'id': recipe.id, 'before': before, 'after': f"{recipe.usage_amount}{recipe.usage_unit}"})

        menu_ids = {recipe.menu_id for recipe in lines}
        for menu_id in menu_ids:
            recalculate_menu(db.session.get(Menu, menu_id))

        log_audit("MIGRATION", "Recipe", None, f"Normalized {len(fixed)} recipe lines to base units")
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Recipe unit migration failed: %s", e)
        return jsonify({'error': _("Migration failed")}), 500

    current_app.logger.info("Normalized %d recipe lines to base units", len(fixed))
    return jsonify({'fixed': fixed, 'recalculated_menus': sorted(menu_ids)})


@admin_blueprint.route('/admin/audit_log')
def audit_log():
    limit = request.args.get('limit', 100, type=int)
    logs = AuditLog.query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify({'logs': [log.to_dict() for log in logs]})
