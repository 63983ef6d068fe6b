# feedsync/api/posts/__init__.py
