from typing import Tuple

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CssHooks(BaseModel):
    """Class names the gallery markup uses to mark its moving parts."""

    model_config = ConfigDict(frozen=True)

    error: str = "error"
    image_container: str = "image-container"
    image_delete: str = "image-delete"
    percent: str = "percent"
    draggable: str = "draggable"
    dragging: str = "dragging"
    editor: str = "editor"


class GalleryConfig(BaseModel):
    """Explicit configuration handed to the coordinator at construction.

    Page region ids, CSS hooks, message texts and the submission rules live
    here so no component has to read shared globals.
    """

    model_config = ConfigDict(frozen=True)

    # Page regions
    images_id: str = "images"
    files_list_id: str = "files-list"
    upload_id: str = "upload"
    images_description_id: str = "images-description"
    num_images_error_id: str = "num-images-error"
    submit_id: str = "submit"

    css: CssHooks = CssHooks()

    # Submission rules
    min_images: int = 15
    max_images: int = 20
    block_submit_while_uploading: bool = True

    # Upload / ordering behaviour
    auto_start_upload: bool = False
    sync_order: bool = True
    drag_hysteresis: int = 5
    allowed_extensions: Tuple[str, ...] = ("jpg", "gif", "png")

    # Messages
    caption_required_text: str = "Caption required"
    upload_error_text: str = "Error uploading file."
    invalid_response_text: str = "Error: unexpected upload response."
    max_words_error_text: str = "Too many words: "

    @model_validator(mode="after")
    def _check_bounds(self) -> "GalleryConfig":
        if self.min_images < 0 or self.max_images < self.min_images:
            raise ValueError(
                f"invalid image bounds [{self.min_images}, {self.max_images}]"
            )
        return self

    def within_bounds(self, count: int) -> bool:
        return self.min_images <= count <= self.max_images

    @property
    def extensions_label(self) -> str:
        return ",".join(self.allowed_extensions)


class Settings(BaseSettings):
    # Gallery rules (the allowed image count differs between forms)
    GALLERY_MIN_IMAGES: int = 15
    GALLERY_MAX_IMAGES: int = 20
    BLOCK_SUBMIT_WHILE_UPLOADING: bool = True
    AUTO_START_UPLOAD: bool = False
    SYNC_ORDER: bool = True
    DRAG_HYSTERESIS: int = 5  # pixels before a press turns into a drag

    # Upload engine
    UPLOAD_URL: str = "/upload"
    ALLOWED_EXTENSIONS: str = "jpg,gif,png"
    MAX_FILE_SIZE: str = "10mb"
    CHUNK_SIZE: str = "1mb"
    UPLOAD_RUNTIMES: str = "gears,html5,flash,silverlight,browserplus"

    # Transport
    BACKEND_BASE_URL: str = "http://localhost:8000"
    TRANSPORT_TIMEOUT_SECONDS: float = 10.0

    # Messages
    CAPTION_REQUIRED_TEXT: str = "Caption required"
    UPLOAD_ERROR_TEXT: str = "Error uploading file."
    MAX_WORDS_ERROR_TEXT: str = "Too many words: "

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True
    LOG_FILE: str = "logs/app.log"
    LOG_MAX_BYTES: int = 5_000_000  # 5 MB
    LOG_BACKUP_COUNT: int = 5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def allowed_extensions(self) -> Tuple[str, ...]:
        return tuple(
            ext.strip().lower().lstrip(".")
            for ext in self.ALLOWED_EXTENSIONS.split(",")
            if ext.strip()
        )

    def gallery_config(self, **overrides) -> GalleryConfig:
        """Build the coordinator's configuration from these settings."""
        values = {
            "min_images": self.GALLERY_MIN_IMAGES,
            "max_images": self.GALLERY_MAX_IMAGES,
            "block_submit_while_uploading": self.BLOCK_SUBMIT_WHILE_UPLOADING,
            "auto_start_upload": self.AUTO_START_UPLOAD,
            "sync_order": self.SYNC_ORDER,
            "drag_hysteresis": self.DRAG_HYSTERESIS,
            "allowed_extensions": self.allowed_extensions,
            "caption_required_text": self.CAPTION_REQUIRED_TEXT,
            "upload_error_text": self.UPLOAD_ERROR_TEXT,
            "max_words_error_text": self.MAX_WORDS_ERROR_TEXT,
        }
        values.update(overrides)
        return GalleryConfig(**values)


settings = Settings()
