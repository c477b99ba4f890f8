from typing import Any, Optional
from pydantic import BaseModel, field_validator


class ScrapeRequest(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def url_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("URL is required")
        return v.strip()


class LinkModel(BaseModel):
    text: str
    href: str


class ImageModel(BaseModel):
    alt: str
    src: str


class ExtractionModel(BaseModel):
    url: str
    title: str = ""
    description: str = ""
    keywords: list[str] = []
    headings: dict[str, list[str]] = {}
    links: list[LinkModel] = []
    images: list[ImageModel] = []
    text: str = ""
    metadata: dict[str, str] = {}
    structured_data: list[Any] = []
    scraped_at: str = ""

    domain_info: dict[str, str] = {}
    stats: dict[str, Any] = {}


class ScrapeResponse(BaseModel):
    scraped_data: ExtractionModel
    cached: bool = False


class SaveRequest(BaseModel):
    # shape is checked by the refiner, not here
    scraped_data: dict[str, Any]


class RecordMetadataModel(BaseModel):
    author: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None


class StoredRecordModel(BaseModel):
    id: str
    url: str
    title: str = ""
    description: str = ""
    keywords: list[str] = []
    main_headings: dict[str, list[str]] = {}
    important_links: list[LinkModel] = []
    image_count: int = 0
    main_images: list[ImageModel] = []
    text_preview: str = ""
    metadata: RecordMetadataModel = RecordMetadataModel()
    structured_data_count: int = 0
    scraped_at: str
    scraped_by: Optional[str] = None
    created_at: str
    updated_at: str


class RecordListResponse(BaseModel):
    items: list[StoredRecordModel]
    total: int
    limit: int
    offset: int


class MessageResponse(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: str
    cache: str  # "connected" or "unavailable"
