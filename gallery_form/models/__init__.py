# Package init for gallery_form.models
from .events import EngineInit as EngineInit
from .events import ErrorKind as ErrorKind
from .events import FilesAdded as FilesAdded
from .events import FileUploaded as FileUploaded
from .events import UploadError as UploadError
from .events import UploadErrorCode as UploadErrorCode
from .events import UploadEvent as UploadEvent
from .events import UploadProgress as UploadProgress
from .events import UploadsSettled as UploadsSettled
from .gallery import BlockReason as BlockReason
from .gallery import CoordinatorState as CoordinatorState
from .gallery import FileDescriptor as FileDescriptor
from .gallery import GalleryItem as GalleryItem
from .gallery import InFlightUpload as InFlightUpload
from .gallery import SubmitDecision as SubmitDecision
from .gallery import UploadStatus as UploadStatus
from .gallery import ValidationResult as ValidationResult
