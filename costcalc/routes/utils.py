import os
from datetime import datetime
from flask import current_app, g, request
from PIL import Image
from werkzeug.utils import secure_filename

from ..calculator import calculate_line_cost, calculate_menu_metrics, normalize_amount, to_safe_number
from ..models import db, AuditLog, Material, Menu, Recipe

# Units offered when registering a material or a recipe line
units_list = ["g", "kg", "ml", "L", "個"]

# Purchase unit -> base unit the quantity is stored in
BASE_UNIT_FOR = {
    'g': 'g',
    'kg': 'g',
    'ml': 'ml',
    'l': 'ml',
}

ALLOWED_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.webp'}


def request_data():
    """JSON body if there is one, form fields otherwise"""
    return request.get_json(silent=True) or request.form


def base_unit_for(unit):
    """Base unit a quantity in `unit` normalizes to. Anything that is not mass or volume is a count."""
    return BASE_UNIT_FOR.get((unit or '').strip().lower(), '個')


def parse_purchase(data):
    """
    Read purchase fields as typed in the material form.

    The quantity is normalized to the base unit before it is stored, e.g.
    2 kg for 1,500 is stored as 2000 g and 0.75 per g.
    """
    purchase_unit = data.get('purchase_unit') or data.get('base_unit') or 'g'
    purchase_price = max(to_safe_number(data.get('purchase_price')), 0.0)
    purchase_quantity = normalize_amount(data.get('purchase_quantity'), purchase_unit)

    return {
        'purchase_price': purchase_price,
        'purchase_quantity': purchase_quantity,
        'base_unit': base_unit_for(purchase_unit),
    }


def log_audit(action, target_type, target_id=None, details=None):
    try:
        log = AuditLog(
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details
        )
        db.session.add(log)
    except Exception as e:
        # Audit logging must not interrupt the main operation
        current_app.logger.warning("Failed to log audit %s %s: %s", action, target_type, e)


def recipe_line_cost(recipe):
    material = recipe.material
    if material is None:
        return 0.0
    return calculate_line_cost(recipe.usage_amount, recipe.usage_unit, recipe.yield_rate, material.unit_price)


def recalculate_menu(menu):
    """
    Re-cost a menu from its recipe lines and store total cost, gross profit
    and cost rate on it. The caller commits.
    """
    recipes = Recipe.query.filter_by(menu_id=menu.id).all() if menu.id is not None else []
    total_cost = sum(recipe_line_cost(recipe) for recipe in recipes)

    metrics = calculate_menu_metrics(menu.sales_price, total_cost)
    menu.total_cost = metrics['total_cost']
    menu.gross_profit = metrics['gross_profit']
    menu.cost_rate = metrics['cost_rate']
    return metrics


def recalculate_menus_using(material):
    menu_ids = {recipe.menu_id for recipe in Recipe.query.filter_by(material_id=material.id).all()}
    for menu_id in menu_ids:
        recalculate_menu(db.session.get(Menu, menu_id))
    return menu_ids


def delete_material_with_recipes(material):
    """
    Delete a material and every recipe line using it in one transaction.
    Menus that used it are re-costed in the same transaction.
    """
    material_id = material.id
    try:
        menu_ids = {recipe.menu_id for recipe in material.recipes}
        db.session.delete(material)
        db.session.flush()

        for menu_id in menu_ids:
            recalculate_menu(db.session.get(Menu, menu_id))

        log_audit("DELETE", "Material", material_id, f"Deleted with recipe lines of {len(menu_ids)} menu(s)")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return menu_ids


def delete_menu_with_recipes(menu):
    """Delete a menu and its recipe lines in one transaction"""
    menu_id = menu.id
    image_filename = menu.image_filename
    try:
        db.session.delete(menu)
        log_audit("DELETE", "Menu", menu_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if image_filename:
        remove_menu_image(image_filename)


def reset_all_data():
    """Remove every recipe line, menu and material in one transaction"""
    try:
        counts = {
            'recipe': Recipe.query.delete(),
            'menu': Menu.query.delete(),
            'material': Material.query.delete(),
        }
        log_audit("RESET", "System", None, f"Removed {counts['material']} materials, {counts['menu']} menus, {counts['recipe']} recipe lines")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    # Bulk deletes bypass the ORM, announce them explicitly
    feed = current_app.extensions.get('change_feed')
    if feed is not None:
        for table in counts:
            feed.publish(table, 'clear', None)
    return counts


def save_menu_image(file):
    """Resize an uploaded menu photo to at most 1024x1024 and store it in UPLOAD_FOLDER"""
    filename = secure_filename(file.filename)
    if not filename or os.path.splitext(filename)[1].lower() not in ALLOWED_IMAGE_EXTENSIONS:
        return None

    timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
    filename = f"{timestamp}_{filename}"

    upload_folder = current_app.config['UPLOAD_FOLDER']
    if not os.path.exists(upload_folder):
        os.makedirs(upload_folder)

    filepath = os.path.join(upload_folder, filename)
    try:
        img = Image.open(file)

        # Convert to RGB if necessary (e.g. RGBA)
        if img.mode in ('RGBA', 'P'):
            img = img.convert('RGB')

        img.thumbnail((1024, 1024), Image.Resampling.LANCZOS)
        img.save(filepath, quality=85, optimize=True)
    except Exception as e:
        current_app.logger.warning("Image resize failed, storing original: %s", e)
        file.seek(0)
        file.save(filepath)

    return filename


def remove_menu_image(filename):
    filepath = os.path.join(current_app.config['UPLOAD_FOLDER'], filename)
    try:
        if os.path.exists(filepath):
            os.remove(filepath)
    except OSError as e:
        current_app.logger.warning("Could not remove menu image %s: %s", filename, e)


def parse_yield_rate(value):
    """Yield percentage limited to [0, 100]. 0 makes the line not computable."""
    return min(max(to_safe_number(value), 0.0), 100.0)


def current_cost_rate_settings():
    """Thresholds as stored in the database, read at most once per request"""
    if 'cost_rate_settings' not in g:
        g.cost_rate_settings = current_app.extensions['cost_rate_settings_store'].load()
    return g.cost_rate_settings
