# feedsync/api/__init__.py
