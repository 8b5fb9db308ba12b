from flask import Blueprint, jsonify
from flask_babel import gettext as _

from ..calculator import to_safe_number
from ..models import db, Material, Menu, Recipe
from .utils import request_data, log_audit, recalculate_menu, recipe_line_cost, parse_yield_rate

recipes_blueprint = Blueprint('recipes', __name__)


def recipe_response(recipe, metrics):
    data = recipe.to_dict()
    data['line_cost'] = recipe_line_cost(recipe)
    data['menu'] = metrics
    return data

# ----------------------------
# Recipe lines of a menu
# ----------------------------
@recipes_blueprint.route('/menus/<int:menu_id>/recipes/add', methods=['POST'])
def add_recipe(menu_id):
    menu = Menu.query.get_or_404(menu_id)
    data = request_data()

    material = db.session.get(Material, int(to_safe_number(data.get('material_id'))))
    if material is None:
        return jsonify({'error': _("Unknown material")}), 400

    # New lines start empty, in the material's own unit
    recipe = Recipe(
        menu=menu,
        material=material,
        usage_amount=max(to_safe_number(data.get('usage_amount', 0)), 0.0),
        usage_unit=data.get('usage_unit') or material.base_unit,
        yield_rate=parse_yield_rate(data.get('yield_rate', 100))
    )
    db.session.add(recipe)
    db.session.flush()

    metrics = recalculate_menu(menu)
    log_audit("CREATE", "Recipe", recipe.id, f"Menu {menu.id}: {material.name}")
    db.session.commit()

    return jsonify(recipe_response(recipe, metrics)), 201

@recipes_blueprint.route('/recipes/edit/<int:recipe_id>', methods=['POST'])
def edit_recipe(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    data = request_data()

    if 'usage_amount' in data:
        recipe.usage_amount = max(to_safe_number(data.get('usage_amount')), 0.0)
    if data.get('usage_unit'):
        recipe.usage_unit = data.get('usage_unit')
    if 'yield_rate' in data:
        recipe.yield_rate = parse_yield_rate(data.get('yield_rate'))

    metrics = recalculate_menu(recipe.menu)
    log_audit("UPDATE", "Recipe", recipe.id,
              f"{recipe.usage_amount}{recipe.usage_unit} at {recipe.yield_rate}% yield")
    db.session.commit()

    return jsonify(recipe_response(recipe, metrics))

@recipes_blueprint.route('/recipes/delete/<int:recipe_id>', methods=['POST'])
def delete_recipe(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    menu = recipe.menu

    db.session.delete(recipe)
    db.session.flush()

    metrics = recalculate_menu(menu)
    log_audit("DELETE", "Recipe", recipe_id, f"Menu {menu.id}")
    db.session.commit()

    return jsonify({'deleted': recipe_id, 'menu': metrics})
