# modtools/submodules/__init__.py
