"""Server-wide configuration constants for Corvus Station Server."""

import os

# ── Station generation ──────────────────────────────────────
MAP_WIDTH = int(os.environ.get("MAP_WIDTH", "48"))     # Station width in tiles
MAP_HEIGHT = int(os.environ.get("MAP_HEIGHT", "28"))   # Station height in tiles
STATION_SEED = int(os.environ.get("STATION_SEED", "184201"))
STATION_ARCHETYPE = os.environ.get("STATION_ARCHETYPE") or None  # None = chosen from seed
MIN_ROOMS = 6
MAX_ROOMS = 10
ROOM_MIN_SIZE = 3
ROOM_MAX_SIZE = 7
ROOM_PLACEMENT_ATTEMPTS = 300
INITIAL_DIRT_MAX = 35           # Upper bound of generated floor dirt

# ── Player ──────────────────────────────────────────────────
PLAYER_MAX_HP = 200
MEDKIT_HEAL = 60
SERVICE_BOT_REVIVE_FRACTION = 0.3   # Share of max HP restored on failover

# ── Hazard field ranges ─────────────────────────────────────
HEAT_MAX = 150
SMOKE_MAX = 100
PRESSURE_MAX = 100
DIRT_MAX = 100

# ── Heat ────────────────────────────────────────────────────
HEAT_DIFFUSION_DIVISOR = 8      # Gradient / divisor moves to each cooler neighbour per turn
HEAT_DECAY_RATE = 1             # Heat lost per turn on every tile
HEAT_SOURCE_RATE = 6            # Heat injected per turn at overheating relays
HEAT_SOURCE_CAP = 120           # Sources stop injecting above this
BREACH_HEAT_RATE = 2            # Torn conduits at an unsealed breach
HEAT_PAIN_THRESHOLD = 50        # Heat above this damages co-located entities
HEAT_DAMAGE_PER_TURN = 4
HEAT_DAMAGE_INTERVAL = 1        # Damage every N turns while above the threshold
HEAT_VISIBLE_THRESHOLD = 30     # Thermal sensor reveals tiles at or above this

# ── Smoke ───────────────────────────────────────────────────
SMOKE_DIFFUSION_DIVISOR = 6
SMOKE_DECAY_RATE = 3
SMOKE_SOURCE_RATE = 4
SMOKE_SOURCE_CAP = 60
SMOKE_LOS_THRESHOLD = 50        # Above this, sight through / into the tile is blocked
SMOKE_DAMAGE_THRESHOLD = 70
SMOKE_DAMAGE_PER_TURN = 1

# ── Pressure ────────────────────────────────────────────────
PRESSURE_BREACH_DRAIN = 4       # Lost per turn on tiles influenced by an unsealed breach
AIRLOCK_PRESSURE_DRAIN = 6      # Lost per turn near an open airlock
BREACH_INFLUENCE_RADIUS = 5     # Walkable flood-fill distance from a breach
PRESSURE_DAMAGE_THRESHOLD = 30
PRESSURE_DAMAGE_PER_TURN = 2
PRESSURE_VISIBLE_THRESHOLD = 60  # Atmospheric sensor reveals tiles below this
VALVE_PRESSURE_RESTORE = 40     # Restored per valve turn on its room's tiles

# ── Dirt / cleaning ─────────────────────────────────────────
DIRT_ACCUMULATION_INTERVAL = 10  # Turns between dirt build-up ticks
DIRT_ACCUMULATION_AMOUNT = 1
CLEAN_AMOUNT = 40               # Dirt removed per clean on the player's tile
CLEAN_SPLASH_AMOUNT = 15        # Dirt removed on the four neighbours
BURIED_ITEM_DIRT = 70           # Dirt piled over hidden crew items
BURIED_REVEAL_DIRT = 30         # Hidden items surface once dirt drops below this
ROOM_CLEANLINESS_GOAL = 80      # Percent clean for a room to count as cleaned

# ── Recovery ────────────────────────────────────────────────
COOL_RECOVERY_RATE = 1          # HP recovered per turn on safe tiles

# ── Deterioration ───────────────────────────────────────────
DETERIORATION_INTERVAL = 40     # Turns between station surges
DETERIORATION_HEAT_BOOST = 15

# ── Vision ──────────────────────────────────────────────────
VISION_RADIUS = 6
VISION_RADIUS_THERMAL = 12
VISION_RADIUS_ATMOSPHERIC = 10
SCAN_RADIUS = 6

# ── Entities ────────────────────────────────────────────────
PATROL_STUN_TURNS = 2
PATROL_STUN_COOLDOWN = 6
REPAIR_BOT_FOLLOW_TURNS = 25
REPAIR_BOT_COOLING = 8          # Heat removed per turn around a following repair bot
REPAIR_BOT_COOLANT_PER_TURN = 2   # Coolant spent per turn while following
REPAIR_CRADLE_COOLDOWN = 30
CREW_NPC_HP = 50
ESCAPE_POD_CAPACITY = 2

# ── Objectives ──────────────────────────────────────────────
CLEAN_ROOMS_REQUIRED = 1
MIN_CORRECT_DEDUCTIONS = 1
EVIDENCE_THRESHOLD_RATIO = 0.4  # Share of placed evidence needed to unlock recovery
MIN_EVIDENCE_THRESHOLD = 2
RELAYS_REQUIRED = 2
EVACUATION_QUOTA = 2

# ── Persistence / service ───────────────────────────────────
DATA_DIR = os.environ.get("DATA_DIR", ".")  # Persistent data directory
SAVE_FILE = os.path.join(DATA_DIR, "station_state.json")
SAVE_VERSION = 1
SERVICE_NAME = "Corvus Station Server"
SERVICE_VERSION = "0.1.0"
