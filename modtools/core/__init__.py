# modtools/core/__init__.py
