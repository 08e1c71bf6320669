import importlib
import pkgutil


def load_handlers():
    """
    Dynamically loads all chat event handler modules in this package to
    trigger their registration via decorators.
    """
    for _, module_name, _ in pkgutil.iter_modules(__path__):
        importlib.import_module(f"{__name__}.{module_name}")
