"""
File storage module.

Upload validation, S3 object addressing, and the file/folder/object routes
of the FileVault API. Routers are collected in ``api.s3.router``.
"""
