# modtools/app/__init__.py
