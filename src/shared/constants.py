from datetime import timedelta

# Default tile server (OpenStreetMap standard raster tiles)
TILE_SERVER_BASE_URL = 'https://a.tile.openstreetmap.org'

# Path template appended to the base URL: /{zoom}/{x}/{y}.png
TILE_PATH_TEMPLATE = '/{zoom}/{x}/{y}.png'

# Raster tile size (px) and nominal display DPI of the tiling scheme
TILE_SIZE = 256
TILE_DPI = 96

# Web Mercator spatial reference and full extent (metres)
WEB_MERCATOR_WKID = 3857
WEB_MERCATOR_HALF_EXTENT_M = 2.003750834278e7

# Resolutions (metres per pixel) of the tiling scheme, one per zoom level
TILE_RESOLUTIONS = (
    156543.0339279998,
    78271.5169639999,
    39135.7584820001,
    19567.8792409999,
    9783.93962049996,
    4891.96981024998,
    2445.98490512499,
    1222.99245256249,
    611.49622628138,
    305.748113140558,
    152.874056570411,
    76.4370282850732,
    38.2185141425366,
    19.1092570712683,
    9.55462853563415,
    4.77731426794937,
    2.38865713397468,
    1.19432856685505,
    0.597164283559817,
    0.298582141647617,
    0.149291070823808,
    0.074645535411904,
    0.037322767705952,
    0.018661383985268,
)

# Map scales (1:N) matching TILE_RESOLUTIONS
TILE_SCALES = (
    5.91657527591555e8,
    2.95828763795777e8,
    1.47914381897889e8,
    7.3957190948944e7,
    3.6978595474472e7,
    1.8489297737236e7,
    9244648.868618,
    4622324.434309,
    2311162.217155,
    1155581.108577,
    577790.554289,
    288895.277144,
    144447.638572,
    72223.819286,
    36111.909643,
    18055.954822,
    9027.977411,
    4513.988705,
    2256.994353,
    1128.497176,
    564.248588,
    282.124294,
    141.062147,
    70.531074,
)

# Supported zoom levels are bounded by the resolution table
MIN_ZOOM = 0
MAX_ZOOM = len(TILE_RESOLUTIONS) - 1

# Zoom range served by the default tile source
SOURCE_MIN_ZOOM = 0
SOURCE_MAX_ZOOM = 18

# --- Web Mercator
# Latitude where the projection becomes square (degrees)
MERCATOR_MAX_LAT_DEG = 85.0511287798
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0
# Fraction of the world width within which region edges snap to a tile
# boundary; scaled by 2^zoom so it stays above float error at deep zooms
XY_EPSILON = 1e-9

# --- Cache freshness policy
# Cached tiles younger than this are served without a network round-trip
CACHE_MAX_AGE = timedelta(days=3)
# Cached tiles younger than this are served when the network fails
CACHE_MAX_STALE = timedelta(days=90)
# Total size ceiling of the on-disk cache
CACHE_CAPACITY_BYTES = 250 * 1024 * 1024
# Cache directory (relative paths are resolved against the user's home)
TILE_CACHE_DIR = '.tile_cache/streaming'
TILE_CACHE_DB_NAME = 'tiles.db'
# Max pending writes for the background cache writer
TILE_WRITE_QUEUE_SIZE = 1000

# max-stale value used by the cache-only policy (no upper bound)
CACHE_ONLY_MAX_STALE_S = 2**31 - 1

# --- Network
HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_OK = 200
HTTP_NOT_MODIFIED = 304
USER_AGENT = 'tile-cache-fetcher/1.0'

# Reachability probe: TCP connect to the tile host
REACHABILITY_PORT = 443
REACHABILITY_TIMEOUT_S = 1.5

# --- Prefetch
# Max parallel HTTP requests during prefetch
DOWNLOAD_CONCURRENCY = 8
# Log memory usage every N fetched tiles
PREFETCH_LOG_MEMORY_EVERY_TILES = 50

# Prefix for environment variables read by shared.config
ENV_PREFIX = 'TILES_'
