"""
Responsive image attachment.

An attachment is created either locally from an upload (from_file,
from_buffer) or from the structured record written by an earlier save
(from_db_response). Saving a local attachment runs the derivation pipeline,
writes every kept rendition to the configured disk and flips it to
persisted; deleting removes those files again.

Storage and logging are injected through an AttachmentContext rather than
process-wide setters.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from responsive_attachment.errors import (
    AttachmentFormatError,
    AttachmentInputError,
    InvalidFileError,
)
from responsive_attachment.schemas import (
    AttachmentOptions,
    AttachmentRecord,
    BlurhashOptions,
    ImageData,
    ImageRendition,
    SignedUrlOptions,
    UrlPolicy,
    UrlPolicyKind,
)
from responsive_attachment.services.image_manipulation import (
    generate_blurhash,
    generate_breakpoint_images,
    generate_thumbnail,
    optimize,
)
from responsive_attachment.services.naming import generate_id, generate_name, sanitize_file_name
from responsive_attachment.services.storage_driver import DriveManager, StorageDriver
from responsive_attachment.services.utils.image_utils import (
    ALLOWED_FORMATS,
    bytes_to_kbytes,
    get_dimensions,
    get_image_extension,
    mime_type_for,
    probe,
)

UrlRecords = Dict[str, Any]
SigningOptions = Union[SignedUrlOptions, Dict[str, Any], None]


@dataclass
class AttachmentContext:
    """Storage disks and logger used by attachments"""
    drive: DriveManager
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("responsive_attachment"))


@dataclass
class UploadedFile:
    """File handed over by the request body parser"""
    field_name: str
    tmp_path: Optional[str] = None
    type: str = "image"
    subtype: Optional[str] = None
    extname: Optional[str] = None
    size: int = 0
    client_name: Optional[str] = None


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base, skipping None values"""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        elif value is not None or key not in result:
            result[key] = value
    return result


def _field_names(data: Dict[str, Any], model: type) -> Dict[str, Any]:
    """Translate camelCase aliases to field names"""
    aliases = {info.alias: name for name, info in model.model_fields.items() if info.alias}
    return {aliases.get(key, key): value for key, value in data.items()}


def _normalize_options(options: Union[AttachmentOptions, Dict[str, Any], None]) -> Dict[str, Any]:
    if options is None:
        return {}
    if isinstance(options, AttachmentOptions):
        data = options.to_merge_dict()
        return {key: data[key] for key in options.model_fields_set}

    data = _field_names(options, AttachmentOptions)
    blurhash = data.get("blurhash")
    if isinstance(blurhash, BaseModel):
        data["blurhash"] = blurhash.model_dump(exclude_unset=True)
    elif isinstance(blurhash, dict):
        data["blurhash"] = _field_names(blurhash, BlurhashOptions)
    return data


class ResponsiveAttachment:
    """Image attachment with responsive renditions"""

    def __init__(
        self,
        context: AttachmentContext,
        *,
        name: Optional[str] = None,
        size: Optional[float] = None,
        hash: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        format: Optional[str] = None,
        extname: Optional[str] = None,
        mime_type: Optional[str] = None,
        blurhash: Optional[str] = None,
        file_name: Optional[str] = None,
        breakpoints: Optional[Dict[str, ImageRendition]] = None,
        buffer: Optional[bytes] = None,
    ):
        self.context = context
        self.options: Optional[AttachmentOptions] = None

        self.name = name
        self.size = size
        self.hash = hash
        self.width = width
        self.height = height
        self.format = format
        self.extname = extname
        self.mime_type = mime_type
        self.blurhash = blurhash
        self.file_name = file_name or ""
        self.breakpoints = breakpoints

        # Only available once URLs are computed, never persisted
        self.url: Optional[str] = None
        self.urls: Optional[UrlRecords] = None

        self._buffer = buffer
        self.is_local = buffer is not None
        self.is_persisted = False
        self.is_deleted = False

    @classmethod
    async def from_file(
        cls,
        context: AttachmentContext,
        file: Optional[UploadedFile],
        file_name: Optional[str] = None,
    ) -> "ResponsiveAttachment":
        """
        Create a local attachment from an uploaded file.

        Args:
            context: Storage and logger to use
            file: Uploaded file with its temporary path
            file_name: Label used in the generated file names, defaults to
                the form field name

        Raises:
            AttachmentInputError: If no file is given
            AttachmentFormatError: If the subtype is not an allowed format
            InvalidFileError: If the temporary file is missing
        """
        if not file:
            raise AttachmentInputError("You should provide a non-falsy value")

        if file.subtype not in ALLOWED_FORMATS:
            raise AttachmentFormatError.for_format(file.subtype)

        if not file.tmp_path or not Path(file.tmp_path).is_file():
            raise InvalidFileError("Please provide a valid file")

        loop = asyncio.get_event_loop()
        buffer = await loop.run_in_executor(None, Path(file.tmp_path).read_bytes)

        return cls(
            context,
            extname=file.extname,
            mime_type=f"{file.type}/{file.subtype}",
            size=file.size,
            file_name=sanitize_file_name(file_name or file.field_name),
            buffer=buffer,
        )

    @classmethod
    async def from_buffer(
        cls,
        context: AttachmentContext,
        buffer: Optional[bytes],
        name: Optional[str] = None,
    ) -> "ResponsiveAttachment":
        """
        Create a local attachment from raw bytes. The image type is sniffed
        from the content.

        Raises:
            AttachmentInputError: If the buffer is empty
            AttachmentFormatError: If the content is not an allowed image
        """
        if not buffer:
            raise AttachmentInputError("Please provide a valid file buffer")

        info = probe(buffer)
        if info is None or not info.is_supported:
            raise AttachmentFormatError.for_format(info.format if info else None)

        return cls(
            context,
            extname=get_image_extension(info.format),
            mime_type=mime_type_for(info.format),
            size=len(buffer),
            file_name=sanitize_file_name(name) if name else "",
            buffer=buffer,
        )

    @classmethod
    def from_db_response(
        cls,
        context: AttachmentContext,
        response: Union[str, bytes, Dict[str, Any], None],
    ) -> Optional["ResponsiveAttachment"]:
        """
        Rebuild an attachment from its stored record. Records that cannot
        be parsed are skipped with a warning.
        """
        data: Any = response
        if isinstance(response, (str, bytes)):
            try:
                data = json.loads(response)
            except ValueError:
                # JSONDecodeError, or UnicodeDecodeError for non UTF-8 bytes
                context.logger.warning("Incompatible image data skipped: %s", response)
                return None

        if data is None:
            return None

        try:
            record = AttachmentRecord.model_validate(data)
        except ValidationError as e:
            context.logger.warning("Incompatible image data skipped: %s (%s)", response, e)
            return None

        attachment = cls(
            context,
            name=record.name,
            size=record.size,
            hash=record.hash,
            width=record.width,
            height=record.height,
            format=record.format,
            extname=record.extname,
            mime_type=record.mime_type,
            blurhash=record.blurhash,
            breakpoints=record.breakpoints,
        )

        # Anything read back from storage went through a successful save
        attachment.is_persisted = True
        return attachment

    @property
    def attributes(self) -> ImageRendition:
        """Persistable attributes of the original image"""
        return ImageRendition(
            name=self.name,
            size=self.size,
            hash=self.hash,
            width=self.width,
            height=self.height,
            format=self.format,
            extname=self.extname,
            mime_type=self.mime_type,
            blurhash=self.blurhash,
        )

    def _get_disk(self, options: Optional[AttachmentOptions] = None) -> StorageDriver:
        options = options or self.options
        return self.context.drive.use(options.disk if options else None)

    def set_options(
        self,
        options: Union[AttachmentOptions, Dict[str, Any], None] = None,
        **overrides: Any,
    ) -> "ResponsiveAttachment":
        """
        Deep-merge options over the current ones (or the defaults).

        Breakpoint maps merge key by key, so {"breakpoints": {"xlarge": 1500}}
        adds a breakpoint and {"breakpoints": {"small": "off"}} disables one.
        """
        partial = _deep_merge(_normalize_options(options), _normalize_options(overrides))
        current = (self.options or AttachmentOptions()).to_merge_dict()
        self.options = AttachmentOptions.model_validate(_deep_merge(current, partial))
        return self

    async def _enhance_file(self, options: AttachmentOptions) -> ImageData:
        """Optimize the upload and describe the resulting buffer"""
        output = await optimize(self._buffer, options)

        image_data = ImageData(
            size=self.size,
            width=self.width,
            height=self.height,
            format=self.format,
            extname=self.extname,
            mime_type=self.mime_type,
            file_name=self.file_name,
            hash=generate_id(),
            buffer=output.buffer,
        )

        info = output.info
        if info is not None:
            image_data.width = info.width
            image_data.height = info.height
            image_data.size = info.size
            image_data.format = info.format
            image_data.mime_type = info.mime_type
            image_data.extname = info.extname
            return image_data

        probed = probe(output.buffer)
        if probed is not None and probed.is_supported:
            image_data.width = probed.width
            image_data.height = probed.height
            image_data.format = probed.format
            image_data.mime_type = mime_type_for(probed.format)
            image_data.extname = get_image_extension(probed.format)
        image_data.size = bytes_to_kbytes(len(output.buffer))
        return image_data

    async def save(self) -> "ResponsiveAttachment":
        """
        Run the derivation pipeline and write every kept rendition.

        No-op for attachments that are not local or already persisted.
        Failures are logged and re-raised with the attachment state
        unchanged; files written before the failure are left for the
        caller's rollback to clean up.
        """
        if not self.is_local or self.is_persisted:
            return self

        options = self.options or AttachmentOptions()

        try:
            disk = self._get_disk(options)
            enhanced = await self._enhance_file(options)

            if options.keep_original:
                enhanced.name = generate_name(
                    extname=enhanced.extname,
                    hash=enhanced.hash,
                    options=options,
                    prefix="original",
                    file_name=self.file_name,
                )
                await disk.put(enhanced.name, enhanced.buffer)

            thumbnail = await generate_thumbnail(enhanced, options)
            blurhash = await generate_blurhash(enhanced, options, thumbnail)
            enhanced.blurhash = blurhash

            breakpoints: Dict[str, ImageRendition] = {}

            thumbnail_is_required = options.responsive_dimensions and not options.disable_thumbnail
            if thumbnail is not None and thumbnail_is_required:
                thumbnail.blurhash = blurhash
                await disk.put(thumbnail.name, thumbnail.buffer)
                thumbnail.buffer = None
                breakpoints["thumbnail"] = thumbnail.to_rendition()

            for key, file in await generate_breakpoint_images(enhanced, options):
                await disk.put(file.name, file.buffer)
                file.buffer = None
                breakpoints[key] = file.to_rendition()

            enhanced.width, enhanced.height = get_dimensions(enhanced.buffer)
            enhanced.buffer = None
        except Exception:
            self.context.logger.critical("Responsive attachment save failed", exc_info=True)
            raise

        if options.keep_original:
            self.name = enhanced.name
            self.size = enhanced.size
            self.hash = enhanced.hash
            self.width = enhanced.width
            self.height = enhanced.height
            self.format = enhanced.format
            self.extname = enhanced.extname
            self.mime_type = enhanced.mime_type
        else:
            self.name = self.size = self.hash = None
            self.width = self.height = self.format = None
            self.extname = self.mime_type = None

        self.blurhash = blurhash
        self.breakpoints = breakpoints or None
        self.is_persisted = True
        self._buffer = None

        try:
            await self.compute_urls()
        except Exception as e:
            self.context.logger.error("Responsive attachment URL computation failed: %s", e)

        return self

    async def delete(self) -> None:
        """Delete the original and every breakpoint from the disk"""
        if not self.is_persisted:
            return

        options = self.options or AttachmentOptions()

        try:
            disk = self._get_disk(options)

            if options.keep_original and self.name:
                await disk.delete(self.name)

            for rendition in (self.breakpoints or {}).values():
                if rendition.name:
                    await disk.delete(rendition.name)
        except Exception:
            self.context.logger.critical("Responsive attachment delete failed", exc_info=True)
            raise

        self.is_deleted = True
        self.is_persisted = False

    async def _url_for(
        self,
        disk: StorageDriver,
        key: str,
        signed_url_options: Optional[SignedUrlOptions],
    ) -> Optional[str]:
        try:
            if await disk.get_visibility(key) == "private":
                return await disk.get_signed_url(key, signed_url_options)
            return await disk.get_url(key)
        except Exception as e:
            self.context.logger.error("Could not compute URL for '%s': %s", key, e)
            return None

    async def _compute_custom_urls(self, policy: UrlPolicy, disk: StorageDriver) -> Optional[UrlRecords]:
        try:
            computed = await policy.compute(disk, self)
        except Exception as e:
            self.context.logger.error("Custom URL computation failed: %s", e)
            return None

        if not computed:
            return None

        self.url = computed.get("url")
        update: UrlRecords = {"url": self.url, "breakpoints": {}}
        for key, value in (computed.get("breakpoints") or {}).items():
            update["breakpoints"][key] = {"url": (value or {}).get("url")}

        self.urls = _deep_merge(self.urls or {}, update)
        return self.urls

    async def compute_urls(self, signed_url_options: SigningOptions = None) -> Optional[UrlRecords]:
        """
        Compute the URLs of the original and every breakpoint.

        Private files get signed URLs, public files plain ones. A lookup that
        fails is logged and left out. Freshly saved local attachments only get
        URLs when pre_compute_urls is enabled.

        Returns:
            {"url": ..., "breakpoints": {key: {"url": ...}}} or None
        """
        if not self.is_persisted:
            return None

        policy = self.options.pre_compute_urls if self.options else UrlPolicy.default()
        if not policy.enabled and self.is_local:
            return None

        options = self.options or AttachmentOptions()
        disk = self._get_disk(options)

        if policy.kind is UrlPolicyKind.CUSTOM:
            return await self._compute_custom_urls(policy, disk)

        if isinstance(signed_url_options, dict):
            signed_url_options = SignedUrlOptions.model_validate(signed_url_options)

        urls: UrlRecords = dict(self.urls or {})

        if options.keep_original and self.name:
            url = await self._url_for(disk, self.name, signed_url_options)
            if url:
                urls["url"] = url
                self.url = url

        if self.breakpoints:
            breakpoint_urls = dict(urls.get("breakpoints") or {})
            for key, rendition in self.breakpoints.items():
                if not rendition.name:
                    continue
                url = await self._url_for(disk, rendition.name, signed_url_options)
                if url:
                    breakpoint_urls[key] = {"url": url}
            urls["breakpoints"] = breakpoint_urls

        self.urls = urls
        return self.urls

    async def get_urls(self, signing_options: SigningOptions = None) -> Optional[UrlRecords]:
        """Like compute_urls, but errors are logged and yield None"""
        try:
            return await self.compute_urls(signing_options)
        except Exception as e:
            self.context.logger.error("Responsive attachment URL computation failed: %s", e)
            return None

    def to_object(self) -> Dict[str, Any]:
        """Structured data to persist alongside the host record"""
        keep_original = self.options.keep_original if self.options else True

        data = self.attributes.to_dict() if keep_original else {}
        if self.breakpoints is not None:
            data["breakpoints"] = {key: rendition.to_dict() for key, rendition in self.breakpoints.items()}
        return data

    def to_json(self) -> Dict[str, Any]:
        """Wire representation: the persisted data plus computed URLs"""
        return _deep_merge(self.to_object(), self.urls or {})

    def __repr__(self) -> str:
        state = "persisted" if self.is_persisted else "deleted" if self.is_deleted else "local"
        return f"<ResponsiveAttachment {self.name or self.file_name!r} {state}>"
