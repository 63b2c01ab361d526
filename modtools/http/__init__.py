# modtools/http/__init__.py
