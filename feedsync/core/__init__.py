# feedsync/core/__init__.py
