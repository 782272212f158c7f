# docmark/core/metadata.py
"""String keys used in segment, artifact and document metadata."""


class MetadataKeys:
    """Well-known metadata keys. All values stored under them are strings."""

    PAGE = "page"
    CAPTION = "caption"
    OCR_TEXT = "ocr_text"
    DETAILED_DESCRIPTION = "detailed_description"
    TAGS = "tags"
    IMAGE_ENRICHED = "image_enriched"
    TABLE_ENRICHED = "table_enriched"
    STRUCTURED_TABLE = "structured_table"
    ENRICHMENT_PROVIDER = "enrichment_provider"

    DOCUMENT_TITLE = "document_title"
    DOCUMENT_TITLE_HINT = "document_title_hint"
    DOCUMENT_PAGES = "document_pages"
    DOCUMENT_SEGMENTS = "document_segments"
    DOCUMENT_IMAGES = "document_images"
    DOCUMENT_TABLES = "document_tables"
    EXTRACTOR = "extractor"

    WORKSPACE_DIRECTORY = "workspace_directory"
    WORKSPACE_SOURCE_FILE = "workspace_source_file"
    WORKSPACE_MARKDOWN_FILE = "workspace_markdown_file"

    TABLE_INDEX = "table_index"
    TABLE_PAGE_START = "table_page_start"
    TABLE_PAGE_END = "table_page_end"
    TABLE_PAGE_RANGE = "table_page_range"
    TABLE_COMMENT = "table_comment"

    ARTIFACT_PATH = "artifact_path"
    ARTIFACT_FILE_NAME = "artifact_file_name"

    ARCHIVE_MEMBER = "archive_member"
    ARCHIVE_MEMBERS = "archive_members"


__all__ = ["MetadataKeys"]
