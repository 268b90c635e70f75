import logging

from dotenv import load_dotenv

from gallery_form.api.backend import create_app
from gallery_form.core.logging_utils import configure_logging
from gallery_form.core.settings import settings

load_dotenv()

# Configure logging (console + rotating file; JSON by default)
configure_logging(settings)
logger = logging.getLogger("app")

app = create_app()
logger.info(
    "backend ready",
    extra={
        "min_images": settings.GALLERY_MIN_IMAGES,
        "max_images": settings.GALLERY_MAX_IMAGES,
        "upload_url": settings.UPLOAD_URL,
    },
)
