# feedsync/api/comments/__init__.py
