"""
Storage configuration for Taskflow.
Task attachments are kept on the local filesystem under MEDIA_ROOT.
"""
import os
from pathlib import Path


def get_storage_settings(base_dir: Path) -> dict:
    """
    Returns storage-related settings based on environment configuration.

    Args:
        base_dir: The BASE_DIR from Django settings

    Returns:
        Dictionary with STORAGES, MEDIA_URL and MEDIA_ROOT
    """
    media_root = Path(os.getenv('MEDIA_ROOT', base_dir / 'media'))
    return {
        'STORAGES': {
            'default': {
                'BACKEND': 'django.core.files.storage.FileSystemStorage',
            },
            'staticfiles': {
                'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
            },
        },
        'MEDIA_URL': '/media/',
        'MEDIA_ROOT': media_root,
    }
