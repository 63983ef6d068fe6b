# feedsync/api/users/__init__.py
