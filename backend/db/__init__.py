# Import every model so relationship() strings resolve and create_all sees them.
from . import application, image, inventory, patch_type, preferences, users  # noqa: F401
