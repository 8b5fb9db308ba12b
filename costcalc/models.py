import json
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

from .calculator import calculate_unit_price

db = SQLAlchemy()

# Canonical units every quantity is normalized to
BASE_UNITS = ('g', 'ml', '個')


class Material(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    category = db.Column(db.String(100), nullable=False, default='')
    purchase_price = db.Column(db.Float, nullable=False, default=0.0)
    purchase_quantity = db.Column(db.Float, nullable=False, default=0.0)  # Already in base_unit
    base_unit = db.Column(db.String(10), nullable=False, default='g')
    calculated_unit_price = db.Column(db.Float, nullable=False, default=0.0)  # Price per base_unit
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    recipes = db.relationship('Recipe', backref='material', lazy=True, cascade='all, delete-orphan')

    @property
    def unit_price(self):
        """Unit price recomputed from the purchase fields, matches calculated_unit_price when they are unchanged"""
        return calculate_unit_price(self.purchase_price, self.purchase_quantity)

    def recalculate_unit_price(self):
        self.calculated_unit_price = self.unit_price
        return self.calculated_unit_price

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'purchase_price': self.purchase_price,
            'purchase_quantity': self.purchase_quantity,
            'base_unit': self.base_unit,
            'calculated_unit_price': self.calculated_unit_price,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class Menu(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    sales_price = db.Column(db.Float, nullable=False, default=0.0)

    # Derived from the recipe lines, see routes.utils.recalculate_menu
    total_cost = db.Column(db.Float, nullable=False, default=0.0)
    gross_profit = db.Column(db.Float, nullable=False, default=0.0)
    cost_rate = db.Column(db.Float, nullable=False, default=0.0)

    image_filename = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    recipes = db.relationship('Recipe', backref='menu', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'sales_price': self.sales_price,
            'total_cost': self.total_cost,
            'gross_profit': self.gross_profit,
            'cost_rate': self.cost_rate,
            'image_filename': self.image_filename,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class Recipe(db.Model):
    """One line of a menu's recipe: a material and how much of it is used"""
    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey('menu.id'), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey('material.id'), nullable=False, index=True)
    usage_amount = db.Column(db.Float, nullable=False, default=0.0)
    usage_unit = db.Column(db.String(10), nullable=False, default='g')
    yield_rate = db.Column(db.Float, nullable=False, default=100.0)  # Percent

    def to_dict(self):
        return {
            'id': self.id,
            'menu_id': self.menu_id,
            'material_id': self.material_id,
            'material_name': self.material.name if self.material else None,
            'usage_amount': self.usage_amount,
            'usage_unit': self.usage_unit,
            'yield_rate': self.yield_rate
        }


class AppSetting(db.Model):
    """Key/value store for process-wide settings, values are JSON"""
    __tablename__ = 'app_setting'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def get_value(self):
        return json.loads(self.value)

    def set_value(self, data):
        self.value = json.dumps(data, ensure_ascii=False)


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    action = db.Column(db.String(50), nullable=False)
    target_type = db.Column(db.String(50), nullable=False)
    target_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            'action': self.action,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'details': self.details
        }
