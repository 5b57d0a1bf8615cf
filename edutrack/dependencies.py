from fastapi import Depends

from edutrack.ai.service import AIService
from edutrack.core.config import Settings, get_settings
from edutrack.storage import BucketStorage


def get_storage(settings: Settings = Depends(get_settings)) -> BucketStorage:
    return BucketStorage(settings.upload_dir, settings.upload_url_prefix)


def get_ai_service(settings: Settings = Depends(get_settings)):
    service = AIService(settings.ai)
    try:
        yield service
    finally:
        service.close()
