from .materials import materials_blueprint
from .menus import menus_blueprint
from .recipes import recipes_blueprint
from .settings import settings_blueprint
from .admin import admin_blueprint
