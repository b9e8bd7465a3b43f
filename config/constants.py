"""
Centralized constants for sysdoc.
All magic numbers used by the loader, transformer and exporters.
"""

# ===========================================
# SOURCE DISCOVERY
# ===========================================
MARKDOWN_EXTENSIONS = ['.md', '.markdown']
RASTER_EXTENSIONS = ['.png', '.jpg', '.jpeg', '.gif', '.bmp']
VECTOR_EXTENSIONS = ['.svg']
TABLE_EXTENSIONS = ['.csv']
DOCUMENT_CONFIG_FILE = 'sysdoc.toml'
PARSE_WORKERS = 4                     # parallel markdown parsing threads

# ===========================================
# HEADINGS
# ===========================================
DOCX_MAX_HEADING_LEVEL = 9            # Heading1..Heading9 in Word
MARKDOWN_MAX_HEADING_LEVEL = 6        # h1..h6
SOURCE_HEADING_LEVELS = 6             # per-file heading counters

# ===========================================
# IMAGES
# ===========================================
EMUS_PER_INCH = 914400
DEFAULT_IMAGE_DPI = 96
MAX_IMAGE_WIDTH_INCHES = 6.5
FALLBACK_IMAGE_WIDTH_INCHES = 6.0     # when dimensions cannot be read
FALLBACK_IMAGE_HEIGHT_INCHES = 4.0

# ===========================================
# DOCX LAYOUT
# ===========================================
BLOCKQUOTE_INDENT_TWIPS = 720         # per nesting level
LIST_INDENT_TWIPS = 720
CODE_FONT = 'Courier New'
CODE_FONT_SIZE_PT = 9
ARCHIVE_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

# ===========================================
# MARKDOWN BUNDLE
# ===========================================
BUNDLE_IMAGES_DIR = 'images'

# ===========================================
# LOGGING
# ===========================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/sysdoc.log'
LOG_MAX_SIZE_MB = 10
LOG_BACKUP_COUNT = 5
