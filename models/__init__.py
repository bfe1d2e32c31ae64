from models.auth import User, UserRole, UserSession
from models.files import File, FileStatus, Folder, DEFAULT_FOLDER_COLOR

__all__ = [
    'User', 'UserRole', 'UserSession',
    'File', 'FileStatus', 'Folder', 'DEFAULT_FOLDER_COLOR',
]
