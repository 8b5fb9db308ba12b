from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _

from ..calculator import calculate_unit_price, normalize_amount, to_safe_number
from ..models import db, Material
from .utils import (
    request_data, parse_purchase, base_unit_for, log_audit, recalculate_menus_using,
    delete_material_with_recipes, units_list
)

materials_blueprint = Blueprint('materials', __name__)

# ----------------------------
# Materials Management
# ----------------------------
@materials_blueprint.route('/materials')
def materials():
    all_materials = Material.query.order_by(Material.name.asc()).all()
    return jsonify({
        'materials': [m.to_dict() for m in all_materials],
        'units': units_list
    })

@materials_blueprint.route('/materials/<int:material_id>')
def material_detail(material_id):
    material = Material.query.get_or_404(material_id)
    data = material.to_dict()
    data['menu_count'] = len({recipe.menu_id for recipe in material.recipes})
    return jsonify(data)

@materials_blueprint.route('/materials/add', methods=['POST'])
def add_material():
    data = request_data()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': _("Material name is required")}), 400

    material = Material(
        name=name,
        category=(data.get('category') or '').strip(),
        **parse_purchase(data)
    )
    material.recalculate_unit_price()
    db.session.add(material)
    db.session.flush()

    log_audit("CREATE", "Material", material.id,
              f"{material.purchase_price} / {material.purchase_quantity}{material.base_unit} = {material.calculated_unit_price:.4f}")
    db.session.commit()

    return jsonify(material.to_dict()), 201

@materials_blueprint.route('/materials/edit/<int:material_id>', methods=['POST'])
def edit_material(material_id):
    material = Material.query.get_or_404(material_id)
    data = request_data()

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            return jsonify({'error': _("Material name is required")}), 400
        material.name = name
    if 'category' in data:
        material.category = (data.get('category') or '').strip()

    if 'purchase_price' in data:
        material.purchase_price = max(to_safe_number(data.get('purchase_price')), 0.0)
    if 'purchase_quantity' in data:
        # The quantity is read in the unit sent with it, or the stored base unit
        unit = data.get('purchase_unit') or data.get('base_unit') or material.base_unit
        material.purchase_quantity = normalize_amount(data.get('purchase_quantity'), unit)
        material.base_unit = base_unit_for(unit)
    elif data.get('purchase_unit') or data.get('base_unit'):
        # Without a quantity only the base unit changes, the stored quantity is kept
        material.base_unit = base_unit_for(data.get('purchase_unit') or data.get('base_unit'))

    old_price = material.calculated_unit_price
    material.recalculate_unit_price()
    menu_ids = recalculate_menus_using(material)

    log_audit("UPDATE", "Material", material.id,
              f"Unit price {old_price or 0:.4f} -> {material.calculated_unit_price:.4f}, {len(menu_ids)} menu(s) re-costed")
    db.session.commit()

    return jsonify(material.to_dict())

@materials_blueprint.route('/materials/delete/<int:material_id>', methods=['POST'])
def delete_material(material_id):
    material = Material.query.get_or_404(material_id)
    try:
        menu_ids = delete_material_with_recipes(material)
    except Exception as e:
        current_app.logger.error("Failed to delete material %s: %s", material_id, e)
        return jsonify({'error': _("Could not delete material")}), 500

    return jsonify({'deleted': material_id, 'recalculated_menus': sorted(menu_ids)})

@materials_blueprint.route('/materials/preview_unit_price')
def preview_unit_price():
    """Live unit price of raw form input, nothing is stored"""
    unit = request.args.get('unit', 'g')
    normalized_quantity = normalize_amount(request.args.get('quantity'), unit)
    return jsonify({
        'unit_price': calculate_unit_price(request.args.get('price'), normalized_quantity),
        'normalized_quantity': normalized_quantity,
        'base_unit': base_unit_for(unit)
    })
