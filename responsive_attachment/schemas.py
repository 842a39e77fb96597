"""
Data models for attachments.

Persisted shapes (ImageRendition, AttachmentRecord) are pydantic models that
dump to the camelCase JSON stored alongside a host record. ImageData is the
in-memory working form used by the pipeline; it carries the raw buffer and
must be converted with to_rendition() before anything is serialized.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    field_validator,
    model_validator,
)

ImageFormat = Literal["jpeg", "png", "webp", "avif", "tiff"]

BREAKPOINT_OFF = "off"

DEFAULT_BREAKPOINTS: Dict[str, int] = {
    "large": 1000,
    "medium": 750,
    "small": 500,
}

# Fit-inside box used for thumbnails (width, height)
THUMBNAIL_RESIZE_OPTIONS: Tuple[int, int] = (245, 156)


class ImageRendition(BaseModel):
    """Persisted metadata of one stored file"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    hash: Optional[str] = None
    extname: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    size: Optional[float] = None  # kilobytes
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[ImageFormat] = None
    blurhash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AttachmentRecord(ImageRendition):
    """Structured representation written to the host record"""
    breakpoints: Optional[Dict[str, ImageRendition]] = None


@dataclass
class ImageData:
    """Working form of a rendition while the pipeline runs"""
    name: Optional[str] = None
    hash: Optional[str] = None
    extname: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    blurhash: Optional[str] = None
    file_name: Optional[str] = None
    buffer: Optional[bytes] = field(default=None, repr=False)
    breakpoints: Dict[str, ImageRendition] = field(default_factory=dict)

    def to_rendition(self) -> ImageRendition:
        """Drop the buffer and transient fields"""
        return ImageRendition(
            name=self.name,
            hash=self.hash,
            extname=self.extname,
            mime_type=self.mime_type,
            size=self.size,
            width=self.width,
            height=self.height,
            format=self.format,
            blurhash=self.blurhash,
        )


@dataclass
class OptimizedInfo:
    width: int
    height: int
    size: float
    format: str
    mime_type: str
    extname: str


@dataclass
class OptimizedOutput:
    buffer: bytes
    info: Optional[OptimizedInfo] = None


class Dimension(BaseModel):
    """A breakpoint target: a pixel box edge, or off"""
    model_config = ConfigDict(frozen=True)

    pixels: Optional[PositiveInt] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        if isinstance(value, Dimension):
            return value
        if value == BREAKPOINT_OFF or value is None:
            return {"pixels": None}
        if isinstance(value, bool):
            raise ValueError("breakpoint must be a positive integer or 'off'")
        if isinstance(value, int):
            return {"pixels": value}
        return value

    @property
    def is_off(self) -> bool:
        return self.pixels is None

    @classmethod
    def off(cls) -> "Dimension":
        return cls(pixels=None)


class UrlPolicyKind(Enum):
    DEFAULT = "default"        # compute on demand only
    PRECOMPUTE = "precompute"  # compute right after save
    CUSTOM = "custom"          # delegate to a user function


UrlComputer = Callable[[Any, Any], Awaitable[Optional[Dict[str, Any]]]]


class UrlPolicy:
    """How URLs are produced for an attachment"""
    __slots__ = ("kind", "compute")

    def __init__(self, kind: UrlPolicyKind, compute: Optional[UrlComputer] = None):
        if kind is UrlPolicyKind.CUSTOM and compute is None:
            raise ValueError("A custom URL policy needs a compute function")
        self.kind = kind
        self.compute = compute

    @classmethod
    def default(cls) -> "UrlPolicy":
        return cls(UrlPolicyKind.DEFAULT)

    @classmethod
    def precompute(cls) -> "UrlPolicy":
        return cls(UrlPolicyKind.PRECOMPUTE)

    @classmethod
    def custom(cls, compute: UrlComputer) -> "UrlPolicy":
        return cls(UrlPolicyKind.CUSTOM, compute)

    @classmethod
    def coerce(cls, value: Any) -> "UrlPolicy":
        """Accept a policy, a bool or an async callable"""
        if isinstance(value, UrlPolicy):
            return value
        if value is None or value is False:
            return cls.default()
        if value is True:
            return cls.precompute()
        if callable(value):
            return cls.custom(value)
        raise ValueError(f"Invalid pre_compute_urls value: {value!r}")

    @property
    def enabled(self) -> bool:
        return self.kind is not UrlPolicyKind.DEFAULT

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UrlPolicy):
            return NotImplemented
        return self.kind is other.kind and self.compute is other.compute

    def __repr__(self) -> str:
        return f"UrlPolicy({self.kind.value})"


class BlurhashOptions(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = False
    component_x: PositiveInt = Field(default=4, alias="componentX")
    component_y: PositiveInt = Field(default=3, alias="componentY")


class AttachmentOptions(BaseModel):
    """Options snapshot used for one save cycle"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    disk: Optional[str] = None
    folder: Optional[str] = None
    keep_original: bool = Field(default=True, alias="keepOriginal")
    breakpoints: Dict[str, Dimension] = Field(
        default_factory=lambda: {key: Dimension(pixels=value) for key, value in DEFAULT_BREAKPOINTS.items()}
    )
    force_format: Optional[ImageFormat] = Field(default=None, alias="forceFormat")
    optimize_size: bool = Field(default=True, alias="optimizeSize")
    optimize_orientation: bool = Field(default=True, alias="optimizeOrientation")
    responsive_dimensions: bool = Field(default=True, alias="responsiveDimensions")
    disable_thumbnail: bool = Field(default=False, alias="disableThumbnail")
    persistent_file_names: bool = Field(default=False, alias="persistentFileNames")
    pre_compute_urls: UrlPolicy = Field(default_factory=UrlPolicy.default, alias="preComputeUrls")
    blurhash: BlurhashOptions = Field(default_factory=BlurhashOptions)

    @field_validator("pre_compute_urls", mode="before")
    @classmethod
    def _coerce_url_policy(cls, value: Any) -> UrlPolicy:
        return UrlPolicy.coerce(value)

    def active_breakpoints(self) -> List[Tuple[str, int]]:
        """Breakpoints that are not switched off, in configuration order"""
        return [
            (key, dimension.pixels)
            for key, dimension in self.breakpoints.items()
            if not dimension.is_off
        ]

    def to_merge_dict(self) -> Dict[str, Any]:
        """Plain dict (field names) used as the base of a deep merge"""
        data = self.model_dump(exclude={"pre_compute_urls", "breakpoints"})
        data["breakpoints"] = dict(self.breakpoints)
        data["pre_compute_urls"] = self.pre_compute_urls
        return data


class SignedUrlOptions(BaseModel):
    """Expiry and content-header overrides for signed URLs"""
    model_config = ConfigDict(populate_by_name=True)

    expires_in: Optional[int] = Field(default=None, alias="expiresIn", gt=0)  # seconds
    content_type: Optional[str] = Field(default=None, alias="contentType")
    content_disposition: Optional[str] = Field(default=None, alias="contentDisposition")
    content_encoding: Optional[str] = Field(default=None, alias="contentEncoding")
    content_language: Optional[str] = Field(default=None, alias="contentLanguage")
    cache_control: Optional[str] = Field(default=None, alias="cacheControl")

    def content_headers(self) -> Dict[str, str]:
        return self.model_dump(exclude={"expires_in"}, exclude_none=True)
