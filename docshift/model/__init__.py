from .elements import (
    DEFAULT_COLUMN_WIDTH,
    DEFAULT_TEXT_SIZE,
    Element,
    Header,
    Hyperlink,
    Image,
    ImageType,
    InlineImage,
    KeyedImage,
    List,
    ListItem,
    PageBreak,
    Paragraph,
    Table,
    TableCell,
    TableHeader,
    TableRow,
    Text,
    clamp_level,
    element_text,
)
from .document import Document
from .images import (
    BundleImageLoader,
    BundleImageSink,
    DirectoryImageLoader,
    DirectoryImageSink,
    HttpImageLoader,
    ImageBundle,
    ImageLoader,
    ImageSink,
    NullImageLoader,
    RecordingImageSink,
)

__all__ = [
    "DEFAULT_COLUMN_WIDTH", "DEFAULT_TEXT_SIZE", "Element", "Header", "Hyperlink",
    "Image", "ImageType", "InlineImage", "KeyedImage", "List", "ListItem",
    "PageBreak", "Paragraph", "Table", "TableCell", "TableHeader", "TableRow",
    "Text", "clamp_level", "element_text", "Document", "BundleImageLoader",
    "BundleImageSink", "DirectoryImageLoader", "DirectoryImageSink",
    "HttpImageLoader", "ImageBundle", "ImageLoader", "ImageSink",
    "NullImageLoader", "RecordingImageSink",
]
