import os
from flask import Blueprint, request, jsonify, current_app, send_from_directory, abort
from flask_babel import gettext as _, lazy_gettext as _l

from ..calculator import to_safe_number
from ..cost_rate import evaluate_cost_rate, LABEL_GOOD, LABEL_CAUTION, LABEL_HIGH
from ..models import db, Menu, Recipe
from .utils import (
    request_data, log_audit, recalculate_menu, recipe_line_cost, delete_menu_with_recipes,
    save_menu_image, remove_menu_image, current_cost_rate_settings, ALLOWED_IMAGE_EXTENSIONS
)

menus_blueprint = Blueprint('menus', __name__)

LABEL_TEXT = {
    LABEL_GOOD: _l("Good"),
    LABEL_CAUTION: _l("Caution"),
    LABEL_HIGH: _l("High"),
}


def evaluate_menu(menu):
    evaluation = evaluate_cost_rate(menu.cost_rate, menu.sales_price, current_cost_rate_settings())
    label = evaluation['label']
    evaluation['label_text'] = str(LABEL_TEXT[label]) if label else None
    return evaluation


def menu_summary(menu):
    data = menu.to_dict()
    data['evaluation'] = evaluate_menu(menu)
    return data


@menus_blueprint.route('/images/<path:filename>')
def serve_image(filename):
    """Serve menu photos from UPLOAD_FOLDER"""
    if not any(filename.lower().endswith(ext) for ext in ALLOWED_IMAGE_EXTENSIONS):
        abort(404)

    images_dir = current_app.config['UPLOAD_FOLDER']
    if not os.path.exists(os.path.join(images_dir, filename)):
        abort(404)

    return send_from_directory(images_dir, filename)

# ----------------------------
# Menus Management
# ----------------------------
@menus_blueprint.route('/menus')
def menus():
    all_menus = Menu.query.order_by(Menu.created_at.desc(), Menu.id.desc()).all()
    return jsonify({
        'menus': [menu_summary(menu) for menu in all_menus],
        'currency_symbol': current_app.config['CURRENCY_SYMBOL']
    })

@menus_blueprint.route('/menus/<int:menu_id>')
def menu_detail(menu_id):
    menu = Menu.query.get_or_404(menu_id)

    lines = []
    for recipe in Recipe.query.filter_by(menu_id=menu.id).order_by(Recipe.id).all():
        line = recipe.to_dict()
        line['unit_price'] = recipe.material.unit_price if recipe.material else 0.0
        line['base_unit'] = recipe.material.base_unit if recipe.material else None
        line['line_cost'] = recipe_line_cost(recipe)
        lines.append(line)

    data = menu_summary(menu)
    data['recipes'] = lines
    data['currency_symbol'] = current_app.config['CURRENCY_SYMBOL']
    return jsonify(data)

@menus_blueprint.route('/menus/add', methods=['POST'])
def add_menu():
    data = request_data()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': _("Menu name is required")}), 400

    menu = Menu(name=name, sales_price=max(to_safe_number(data.get('sales_price')), 0.0))
    file = request.files.get('image')
    if file and file.filename:
        menu.image_filename = save_menu_image(file)

    db.session.add(menu)
    db.session.flush()
    recalculate_menu(menu)

    log_audit("CREATE", "Menu", menu.id, f"Sales price {menu.sales_price}")
    db.session.commit()

    return jsonify(menu_summary(menu)), 201

@menus_blueprint.route('/menus/edit/<int:menu_id>', methods=['POST'])
def edit_menu(menu_id):
    menu = Menu.query.get_or_404(menu_id)
    data = request_data()

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            return jsonify({'error': _("Menu name is required")}), 400
        menu.name = name
    if 'sales_price' in data:
        menu.sales_price = max(to_safe_number(data.get('sales_price')), 0.0)

    file = request.files.get('image')
    if file and file.filename:
        new_image = save_menu_image(file)
        if new_image:
            if menu.image_filename:
                remove_menu_image(menu.image_filename)
            menu.image_filename = new_image

    metrics = recalculate_menu(menu)
    log_audit("UPDATE", "Menu", menu.id,
              f"Sales price {menu.sales_price}, total cost {metrics['total_cost']:.2f}, cost rate {metrics['cost_rate']:.1f}%")
    db.session.commit()

    return jsonify(menu_summary(menu))

@menus_blueprint.route('/menus/delete/<int:menu_id>', methods=['POST'])
def delete_menu(menu_id):
    menu = Menu.query.get_or_404(menu_id)
    try:
        delete_menu_with_recipes(menu)
    except Exception as e:
        current_app.logger.error("Failed to delete menu %s: %s", menu_id, e)
        return jsonify({'error': _("Could not delete menu")}), 500

    return jsonify({'deleted': menu_id})
